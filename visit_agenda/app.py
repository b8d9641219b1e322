"""
ASGI entry point for the Visit Agenda API.

Re-exports the FastAPI app from visit_agenda/api/main.py for deployment.
"""

from visit_agenda.api.main import app

__all__ = ["app"]
