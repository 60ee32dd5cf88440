"""Structured logging middleware with correlation IDs."""
import structlog
import uuid
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable
import time

from alumni_chat.config import get_settings


def _log_level() -> int:
    """Numeric level for the configured name; unknown names fall back to INFO."""
    level = logging.getLevelName(get_settings().log_level.upper())
    return level if isinstance(level, int) else logging.INFO


# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(_log_level()),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=False
)

logger = structlog.get_logger()


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs and log all HTTP requests.

    WebSocket traffic bypasses this middleware; the gateway logs its own
    connection lifecycle events.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        trace_id = request.headers.get("X-Trace-ID") or str(uuid.uuid4())
        request.state.trace_id = trace_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(trace_id=trace_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None
        )

        start_time = time.time()
        try:
            response = await call_next(request)
            latency_ms = int((time.time() - start_time) * 1000)

            logger.info(
                "request_completed",
                status_code=response.status_code,
                latency_ms=latency_ms
            )

            response.headers["X-Trace-ID"] = trace_id

            return response

        except Exception as e:
            latency_ms = int((time.time() - start_time) * 1000)

            logger.error(
                "request_failed",
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=latency_ms
            )
            raise


def bind_user(user_id) -> None:
    """Tag every later log line of this request or socket with the caller."""
    structlog.contextvars.bind_contextvars(user_id=str(user_id))


def get_logger():
    """Get configured structured logger."""
    return logger
