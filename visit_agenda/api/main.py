"""
FastAPI application for the Visit Agenda engine.

This is the main entry point for the HTTP API, providing:
- Agenda endpoints (prepare, confirm, availability, update, cancel, contacts)
- Health endpoint
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from visit_agenda import __version__
from visit_agenda.api.agenda_routes import router as agenda_router
from visit_agenda.api.middleware import RequestLoggingMiddleware, configure_logging
from visit_agenda.api.models import HealthResponse
from visit_agenda.config import get_settings
from visit_agenda.exceptions import (
    AgendaError,
    DeadlineExceeded,
    DirectoryUnavailable,
    EventNotFound,
)
from visit_agenda.integrations.webhooks.exceptions import WebhookError

logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifecycle
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    configure_logging(settings.log_level)

    logger.info(f"Starting Visit Agenda API ({settings.python_env})")
    if settings.is_production:
        settings.validate_production_config()
    logger.info(f"Webhooks at {settings.webhook_base_url}, timezone {settings.timezone}")

    yield

    logger.info("Shutting down Visit Agenda API")


# =============================================================================
# FastAPI Application
# =============================================================================


app = FastAPI(
    title="Visit Agenda API",
    description="""
# Visit Agenda API

Turns a dictated appointment ("RDV demain 14h avec Jean Dupont pour 30 min")
into one create, update or cancel operation on the external calendar.

## Core Workflow
1. **POST /agenda/prepare** - Build a draft (participants, times, warnings)
2. Review: pick candidates for ambiguous names, create unknown contacts
3. **POST /agenda/confirm** - Check availability and create the event
   - busy slot: `conflict=true` with a `suggestion`
   - accept it by confirming again with the suggested times
   - update and cancel drafts modify or delete the existing event instead

## Error Handling

**Conflicts are not errors** - they return 200 with a suggestion.

- **404** - Event to update/cancel not found
- **422** - Validation error
- **502** - Upstream webhook failure (status and body included)
- **504** - Request deadline exceeded
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(agenda_router)


# =============================================================================
# Exception Handlers
# =============================================================================


def _error(
    status_code: int,
    error_type: str,
    message: str,
    retryable: bool,
    details: Optional[dict] = None,
) -> JSONResponse:
    content = {
        "error_type": error_type,
        "message": message,
        "retryable": retryable,
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(EventNotFound)
async def event_not_found_handler(request, exc: EventNotFound):
    """The event targeted by an update/cancel could not be identified."""
    details = {"candidates": exc.candidates} if exc.candidates else None
    return _error(404, "event_not_found", exc.message, exc.retryable, details)


@app.exception_handler(DirectoryUnavailable)
async def directory_unavailable_handler(request, exc: DirectoryUnavailable):
    return _error(502, "directory_unavailable", exc.message, exc.retryable)


@app.exception_handler(DeadlineExceeded)
async def deadline_exceeded_handler(request, exc: DeadlineExceeded):
    logger.warning(f"Deadline exceeded on {request.url.path}")
    return _error(504, "timeout_error", exc.message, exc.retryable)


@app.exception_handler(AgendaError)
async def agenda_error_handler(request, exc: AgendaError):
    logger.error(f"Agenda error: {exc}")
    return _error(500, "internal_error", exc.message, exc.retryable)


@app.exception_handler(WebhookError)
async def webhook_error_handler(request, exc: WebhookError):
    """Upstream collaborator failure surfaced with its status and body."""
    logger.error(f"Webhook error: {exc} (status={exc.status_code})")
    details = {"status_code": exc.status_code, "body": exc.body}
    return _error(502, "upstream_error", exc.message, exc.retryable, details)


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Handle HTTP exceptions with consistent format."""
    return _error(exc.status_code, "http_error", exc.detail, exc.status_code >= 500)


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error(500, "internal_error", "An unexpected error occurred", True)


# =============================================================================
# Health & Status Endpoints
# =============================================================================


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    tags=["System"],
)
async def health_check():
    """
    Check API health status.

    The engine holds no connections between requests, so this only reports
    that the process is serving.
    """
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.python_env,
    )


def run_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Run the API server with Uvicorn."""
    import uvicorn

    uvicorn.run(
        "visit_agenda.api.main:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    settings = get_settings()
    run_server(host=settings.api_host, port=settings.api_port, reload=settings.api_reload)
