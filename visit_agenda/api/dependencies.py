"""
FastAPI dependency injection providers.

Provides the request-scoped HTTP client, webhook repository and agenda
service. Nothing here is cached between requests.
"""

import logging
from typing import AsyncIterator

import httpx
from fastapi import Depends

from visit_agenda.config import Settings, get_settings
from visit_agenda.integrations.webhooks import WebhookAgendaRepository
from visit_agenda.services import AgendaCollaborators, AgendaService

logger = logging.getLogger(__name__)


async def get_http_client(
    settings: Settings = Depends(get_settings),
) -> AsyncIterator[httpx.AsyncClient]:
    """
    Dependency injection for the outgoing HTTP client.

    Yields a client opened for this request and closes it afterwards.
    """
    async with httpx.AsyncClient(timeout=settings.webhook_timeout) as client:
        yield client


def get_repository(
    http: httpx.AsyncClient = Depends(get_http_client),
    settings: Settings = Depends(get_settings),
) -> WebhookAgendaRepository:
    """Dependency injection for the webhook collaborators."""
    return WebhookAgendaRepository.from_http(http, settings)


def get_agenda_service(
    repository: WebhookAgendaRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
) -> AgendaService:
    """
    Dependency injection for the agenda engine.

    A fresh service per request; its deadline starts here.
    """
    return AgendaService(AgendaCollaborators.from_repository(repository), settings)
