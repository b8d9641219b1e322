"""
Webhook agenda repository.

Implements every collaborator protocol of integrations.base on top of the
automation server's webhooks.
"""

import logging
from datetime import datetime
from typing import Any, Optional

import httpx

from visit_agenda.config import Settings, get_settings
from visit_agenda.exceptions import DirectoryUnavailable, ExtractionUnavailable
from visit_agenda.integrations.base import (
    AvailabilityService,
    CalendarMutationService,
    ContactCreationService,
    DirectoryService,
    EventLookupService,
    ExtractionService,
)
from visit_agenda.integrations.webhooks.adapter import WebhookAdapter
from visit_agenda.integrations.webhooks.client import WebhookClient
from visit_agenda.integrations.webhooks.exceptions import WebhookError
from visit_agenda.models import (
    CalendarEventPayload,
    ContactId,
    ContactRecord,
    EventMatchQuery,
)

logger = logging.getLogger(__name__)


class WebhookAgendaRepository(
    ExtractionService,
    DirectoryService,
    AvailabilityService,
    EventLookupService,
    CalendarMutationService,
    ContactCreationService,
):
    """
    Collaborator implementation using the agenda webhooks.

    Reads (extraction, directory, lookup) go through the retrying client
    path; availability checks and mutations are sent once.
    """

    def __init__(self, client: WebhookClient, adapter: Optional[WebhookAdapter] = None):
        """
        Initialize the repository.

        Args:
            client: Webhook client bound to a request-scoped httpx client
            adapter: Wire format mapper (built from the client's settings if None)
        """
        self.client = client
        self.settings = client.settings
        self.adapter = adapter or WebhookAdapter(
            self.settings.tzinfo,
            organizer_id=self.settings.organizer_partner_id,
        )

    @classmethod
    def from_http(cls, http: httpx.AsyncClient, settings: Optional[Settings] = None) -> "WebhookAgendaRepository":
        return cls(WebhookClient(http, settings or get_settings()))

    async def extract(self, text: str, reference_now: datetime) -> Any:
        """
        Raises:
            ExtractionUnavailable: On any webhook failure
        """
        body = {
            "text": text,
            "current_datetime": self.adapter.format_datetime(reference_now),
            "current_day": reference_now.strftime("%A"),
            "timezone": self.settings.timezone,
        }
        try:
            return await self.client.read("POST", self.settings.extraction_path, body)
        except WebhookError as e:
            raise ExtractionUnavailable(f"Extractor failed: {e}", original_error=e) from e

    async def list_contacts(self) -> list[ContactRecord]:
        """
        Raises:
            DirectoryUnavailable: On any webhook failure
        """
        try:
            body = await self.client.read("GET", self.settings.directory_path)
        except WebhookError as e:
            raise DirectoryUnavailable(f"Directory fetch failed: {e}", original_error=e) from e

        contacts = self.adapter.contacts_from_response(body)
        logger.debug(f"Fetched {len(contacts)} contacts")
        return contacts

    async def is_available(
        self,
        participant_ids: list[ContactId],
        start: datetime,
        stop: datetime,
    ) -> bool:
        body = await self.client.send(
            self.settings.availability_path,
            self.adapter.to_availability_body(participant_ids, start, stop),
        )
        return self.adapter.availability_from_response(body, start)

    async def find_events(self, query: EventMatchQuery) -> list[ContactId]:
        body = await self.client.read(
            "POST",
            self.settings.find_event_path,
            self.adapter.to_lookup_body(query),
        )
        return self.adapter.event_ids_from_lookup(body)

    async def create_event(self, payload: CalendarEventPayload) -> Any:
        return await self.client.send(
            self.settings.create_event_path,
            self.adapter.to_create_body(payload),
        )

    async def update_event(self, event_id: ContactId, fields: dict[str, Any]) -> Any:
        return await self.client.send(
            self.settings.update_event_path,
            self.adapter.to_update_body(event_id, fields),
        )

    async def delete_event(self, event_id: ContactId) -> Any:
        return await self.client.send(
            self.settings.delete_event_path,
            self.adapter.to_delete_body(event_id),
        )

    async def create_contact(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> ContactRecord:
        body = await self.client.send(
            self.settings.create_contact_path,
            {"name": name, "email": email or "", "phone": phone or ""},
        )
        return self.adapter.contact_from_response(body, name, email=email, phone=phone)
