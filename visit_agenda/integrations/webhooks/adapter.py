"""
Bidirectional mapping between domain types and the webhook wire format.

Handles:
- DateTime formatting (Odoo "YYYY-MM-DD HH:MM:SS" in the configured timezone)
- Contact rows (Odoo false/empty values, numeric string ids)
- The several answer shapes of the availability and lookup webhooks
"""

from datetime import datetime, tzinfo
from typing import Any, Optional

from dateutil.parser import parse as parse_datetime

from visit_agenda.integrations.webhooks.exceptions import WebhookPayloadError
from visit_agenda.models import (
    CalendarEventPayload,
    ContactId,
    ContactRecord,
    EventMatchQuery,
)
from visit_agenda.services.directory import ParticipantDirectory, coerce_contact_id, contact_from_row

ODOO_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Update fields: domain name -> wire name
UPDATE_FIELD_NAMES = {
    "title": "name",
    "name": "name",
    "start": "start",
    "stop": "stop",
    "location": "location",
    "description": "description",
}


class WebhookAdapter:
    """Maps between domain types and webhook JSON bodies."""

    def __init__(self, tz: tzinfo, organizer_id: Optional[ContactId] = None):
        """
        Args:
            tz: Timezone wire datetimes are expressed in
            organizer_id: Partner id set as organizer on created events
        """
        self.tz = tz
        self.organizer_id = organizer_id

    # =========================================================================
    # Datetimes
    # =========================================================================

    def format_datetime(self, dt: datetime) -> str:
        """Format as Odoo local datetime; naive values are taken as local."""
        if dt.tzinfo is not None:
            dt = dt.astimezone(self.tz)
        return dt.strftime(ODOO_DATETIME_FORMAT)

    def parse_datetime(self, value: Any) -> Optional[datetime]:
        """Parse a wire datetime into an aware datetime in the configured timezone."""
        if not value or not isinstance(value, str):
            return None
        try:
            parsed = parse_datetime(value)
        except (ValueError, OverflowError):
            return None
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=self.tz)
        return parsed.astimezone(self.tz)

    # =========================================================================
    # Outgoing bodies
    # =========================================================================

    def to_create_body(self, payload: CalendarEventPayload) -> dict:
        organizer = payload.organizer_id if payload.organizer_id is not None else self.organizer_id
        return {
            "name": payload.title,
            "start": self.format_datetime(payload.start),
            "stop": self.format_datetime(payload.stop),
            "partner_id": organizer,
            "partner_ids": list(payload.participant_ids),
            "location": payload.location or "",
            "description": payload.description or "",
        }

    def to_update_body(self, event_id: ContactId, fields: dict[str, Any]) -> dict:
        """Unknown fields are dropped; datetimes are formatted."""
        body: dict[str, Any] = {"event_id": event_id}
        for key, value in fields.items():
            wire_key = UPDATE_FIELD_NAMES.get(key)
            if wire_key is None:
                continue
            if isinstance(value, datetime):
                value = self.format_datetime(value)
            body[wire_key] = value
        return body

    @staticmethod
    def to_delete_body(event_id: ContactId) -> dict:
        return {"event_id": event_id}

    def to_availability_body(self, participant_ids: list[ContactId], start: datetime, stop: datetime) -> dict:
        return {
            "contact_ids": list(participant_ids),
            "start": self.format_datetime(start),
            "stop": self.format_datetime(stop),
        }

    def to_lookup_body(self, query: EventMatchQuery) -> dict:
        body: dict[str, Any] = {
            "original_start": self.format_datetime(query.original_start),
            "participant_ids": list(query.participant_ids),
        }
        if query.keywords:
            body["keywords"] = list(query.keywords)
        return body

    # =========================================================================
    # Incoming bodies
    # =========================================================================

    @staticmethod
    def contacts_from_response(body: Any) -> list[ContactRecord]:
        return list(ParticipantDirectory.from_payload(body))

    @staticmethod
    def contact_from_response(
        body: Any,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> ContactRecord:
        """
        Raises:
            WebhookPayloadError: If the answer carries no contact id
        """
        if isinstance(body, list):
            body = body[0] if body else None
        if isinstance(body, dict):
            row = dict(body)
            row.setdefault("name", name)
            contact = contact_from_row(row)
            if contact is None:
                contact_id = coerce_contact_id(body.get("partner_id") or body.get("contact_id"))
                if contact_id is not None:
                    contact = ContactRecord(id=contact_id, name=name)
            if contact is not None:
                return ContactRecord(
                    id=contact.id,
                    name=contact.name,
                    email=contact.email or email,
                    phone=contact.phone or phone,
                )
        contact_id = coerce_contact_id(body) if isinstance(body, (int, str)) else None
        if contact_id is not None:
            return ContactRecord(id=contact_id, name=name, email=email, phone=phone)
        raise WebhookPayloadError("Contact creation answer has no id", body=str(body)[:500])

    def availability_from_response(self, body: Any, start: datetime) -> bool:
        """
        Interpret an availability answer.

        Accepted shapes: {available}, {free}, {busy: bool|list},
        {success, start?} (a moved start means the requested one is busy),
        or a list of busy slots.

        Raises:
            WebhookPayloadError: For any other shape
        """
        if isinstance(body, list):
            return len(body) == 0

        if isinstance(body, dict):
            if isinstance(body.get("available"), bool):
                return body["available"]
            if isinstance(body.get("free"), bool):
                return body["free"]
            if "busy" in body:
                busy = body["busy"]
                return not busy
            if isinstance(body.get("success"), bool):
                if not body["success"]:
                    return False
                proposed = self.parse_datetime(body.get("start"))
                return proposed is None or proposed == start.astimezone(self.tz)

        raise WebhookPayloadError("Unrecognized availability answer", body=str(body)[:500])

    @staticmethod
    def event_ids_from_lookup(body: Any) -> list[ContactId]:
        """
        Extract event ids from a lookup answer.

        Accepted shapes: [{found, event: {id}}], {found, event: {id}},
        {event_id}, {id}, {events: [...]}, or null/empty for nothing found.
        """
        if body is None or body == "" or body == []:
            return []

        items = body if isinstance(body, list) else [body]
        ids: list[ContactId] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            if isinstance(item.get("events"), list):
                ids.extend(WebhookAdapter.event_ids_from_lookup(item["events"]))
                continue
            if item.get("found") is False:
                continue

            event = item.get("event") if isinstance(item.get("event"), dict) else item
            event_id = coerce_contact_id(event.get("event_id", event.get("id")))
            if event_id is not None and event_id not in ids:
                ids.append(event_id)
        return ids
