"""Health check endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text

from alumni_chat.database import get_db
from alumni_chat.services.gateway import FanoutGateway, get_gateway
from alumni_chat.api.chat import redis_client

router = APIRouter()


@router.get("/health")
@router.head("/health")
async def health_check():
    """Basic health check."""
    return {"status": "healthy", "service": "alumni-chat"}


@router.get("/health/detailed")
async def detailed_health_check(
    db: Session = Depends(get_db),
    gateway: FanoutGateway = Depends(get_gateway)
):
    """
    Detailed health check including database and Redis connectivity,
    plus the number of live WebSocket connections on this instance.
    """
    checks = {
        "api": "healthy",
        "database": "unknown",
        "redis": "unknown"
    }

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    try:
        redis_client.ping()
        checks["redis"] = "healthy"
    except Exception as e:
        checks["redis"] = f"unhealthy: {str(e)}"

    overall_status = "healthy" if all(
        v == "healthy" for v in checks.values()
    ) else "degraded"

    return {
        "status": overall_status,
        "checks": checks,
        "live_connections": gateway.connection_count
    }
