"""
Commit gateway.

The only place the engine mutates the external calendar. Each operation
makes exactly one call and never retries: a failure comes back as a
CommitFailure carrying the upstream status and body so the caller can
decide on a manual retry.
"""

import logging
from typing import Any, Optional

from visit_agenda.integrations.base import CalendarMutationService
from visit_agenda.integrations.webhooks.exceptions import WebhookError
from visit_agenda.models import (
    CalendarEventPayload,
    CommitFailure,
    CommitOperation,
    CommitOutcome,
    CommitResult,
    ContactId,
)
from visit_agenda.services.directory import coerce_contact_id

logger = logging.getLogger(__name__)


def event_id_from_response(response: Any) -> Optional[ContactId]:
    """Pull an event id out of a calendar answer ({id}, {event_id}, [{...}], 42)."""
    if isinstance(response, list):
        response = response[0] if response else None
    if isinstance(response, dict):
        for key in ("event_id", "id"):
            if key in response:
                return coerce_contact_id(response[key])
        if isinstance(response.get("event"), dict):
            return coerce_contact_id(response["event"].get("id"))
        return None
    return coerce_contact_id(response)


class CommitGateway:
    """Create, update or cancel one calendar event."""

    def __init__(self, calendar: CalendarMutationService):
        self.calendar = calendar

    async def create(self, payload: CalendarEventPayload) -> CommitOutcome:
        try:
            response = await self.calendar.create_event(payload)
        except WebhookError as e:
            return self._failure("create", e)

        event_id = event_id_from_response(response)
        logger.info(f"Created event {event_id} '{payload.title}' at {payload.start.isoformat()}")
        return CommitResult(operation="create", event_id=event_id, response=response)

    async def update(self, event_id: ContactId, fields: dict[str, Any]) -> CommitOutcome:
        try:
            response = await self.calendar.update_event(event_id, fields)
        except WebhookError as e:
            return self._failure("update", e)

        logger.info(f"Updated event {event_id}: {sorted(fields)}")
        return CommitResult(operation="update", event_id=event_id, response=response)

    async def cancel(self, event_id: ContactId) -> CommitOutcome:
        try:
            response = await self.calendar.delete_event(event_id)
        except WebhookError as e:
            return self._failure("cancel", e)

        logger.info(f"Cancelled event {event_id}")
        return CommitResult(operation="cancel", event_id=event_id, response=response)

    @staticmethod
    def _failure(operation: CommitOperation, error: WebhookError) -> CommitFailure:
        logger.error(f"Calendar {operation} failed: {error} (status={error.status_code})")
        return CommitFailure(
            operation=operation,
            message=error.message,
            status_code=error.status_code,
            body=error.body,
            retryable=error.retryable,
        )
