"""
Visit Agenda API module.

Provides FastAPI HTTP endpoints for the agenda engine.
"""

from visit_agenda.api.main import app, run_server

__all__ = ["app", "run_server"]
