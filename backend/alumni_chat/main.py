"""Main FastAPI application."""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
import logging

from alumni_chat.config import get_settings
from alumni_chat.middleware.logging import LoggingMiddleware, get_logger
from alumni_chat.api import chat, health, realtime
from alumni_chat.database import engine, Base
from alumni_chat.services.gateway import FanoutGateway

settings = get_settings()
logger = get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    # Startup
    Base.metadata.create_all(bind=engine)
    logging.info("Database tables verified/created on startup")

    yield  # App runs here

    # Shutdown
    logger.info("shutting_down", live_connections=app.state.gateway.connection_count)


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Two-party alumni conversations with real-time delivery",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

# One connection registry per process, shared by REST and WebSocket handlers
app.state.gateway = FanoutGateway()

# CORS middleware - Allow frontend origins
allowed_origins = [
    "http://localhost:3000",  # Local Next.js dev server
    settings.frontend_url,     # Production frontend
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Trace-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining"]
)

# Logging middleware
app.add_middleware(LoggingMiddleware)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(chat.router, tags=["chat"])
app.include_router(realtime.router, tags=["realtime"])


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    """Storage failures surface as a generic server error."""
    logger.error(
        "storage_error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__
    )
    return JSONResponse(status_code=500, content={"detail": "Server error"})


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": "0.1.0",
        "docs": "/docs" if settings.debug else "disabled",
        "endpoints": {
            "health": "/health",
            "conversations": "GET|POST /api/chat/conversations",
            "messages": "GET|POST /api/chat/conversations/{id}/messages",
            "realtime": "WS /ws?token=<api key>"
        }
    }


# uvicorn alumni_chat.main:app --reload
