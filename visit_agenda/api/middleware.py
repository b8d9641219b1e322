"""
FastAPI middleware for logging and request tracking.

Implements request ID tracking and the logging filter that stamps every
record emitted during a request with that ID.
"""

import logging
import time
import uuid
from contextvars import ContextVar

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Context variable for request ID (available across async calls)
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


def get_request_id() -> str:
    """Get current request ID from context."""
    return request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """Injects the current request ID as record.request_id ('-' outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = get_request_id() or "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """Install a stream handler carrying the request ID on the root logger."""
    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers:
        if any(isinstance(f, RequestIdFilter) for f in handler.filters):
            return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging requests and tracking timing.

    Features:
    - Reuses an incoming X-Request-ID or generates a short one
    - Logs request start and completion
    - Tracks response time
    - Adds X-Request-ID header to response
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request with logging and timing."""
        req_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        token = request_id_ctx.set(req_id)

        logger.info(
            f"[{req_id}] {request.method} {request.url.path}",
            extra={
                "request_id": req_id,
                "method": request.method,
                "path": request.url.path,
            },
        )

        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error(
                f"[{req_id}] Request failed after {elapsed:.2f}s: {e}",
                extra={"request_id": req_id, "elapsed_ms": elapsed * 1000},
                exc_info=True,
            )
            raise
        finally:
            request_id_ctx.reset(token)

        elapsed = time.time() - start_time

        logger.info(
            f"[{req_id}] {response.status_code} in {elapsed:.2f}s",
            extra={
                "request_id": req_id,
                "status_code": response.status_code,
                "elapsed_ms": elapsed * 1000,
            },
        )

        response.headers["X-Request-ID"] = req_id

        return response
