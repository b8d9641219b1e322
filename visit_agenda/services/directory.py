"""
Participant directory index.

Built per request from the contact list the directory collaborator returns.
Names are normalized once at construction; nothing is cached across requests.
"""

import logging
from typing import Any, Iterator, Optional

from visit_agenda.models import ContactId, ContactRecord, MatchCandidate
from visit_agenda.services.matching import normalize_name, rank

logger = logging.getLogger(__name__)

_LIST_KEYS = ("participants", "contacts", "partners", "data", "result", "records")
_NAME_KEYS = ("name", "display_name", "full_name")


def coerce_contact_id(value: Any) -> Optional[ContactId]:
    """Numeric strings become ints; Odoo's false/empty values become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        return int(text)
    return text


def _optional_text(value: Any) -> Optional[str]:
    if value is None or value is False:
        return None
    text = str(value).strip()
    return text or None


def contact_from_row(row: Any) -> Optional[ContactRecord]:
    """Build a ContactRecord from one directory row, or None for junk rows."""
    if not isinstance(row, dict):
        return None

    contact_id = coerce_contact_id(row.get("id"))
    name = None
    for key in _NAME_KEYS:
        name = _optional_text(row.get(key))
        if name:
            break
    if contact_id is None or name is None:
        return None

    return ContactRecord(
        id=contact_id,
        name=name,
        email=_optional_text(row.get("email")),
        phone=_optional_text(row.get("phone") or row.get("mobile")),
    )


class ParticipantDirectory:
    """
    In-memory index of directory contacts.

    Iteration yields ContactRecords in directory order; duplicate ids keep
    the first occurrence.
    """

    def __init__(self, contacts: Optional[list[ContactRecord]] = None):
        self._contacts: dict[ContactId, ContactRecord] = {}
        self._normalized: dict[ContactId, str] = {}
        for contact in contacts or []:
            if contact.id in self._contacts:
                continue
            self._contacts[contact.id] = contact
            self._normalized[contact.id] = normalize_name(contact.name)

    @classmethod
    def from_payload(cls, payload: Any) -> "ParticipantDirectory":
        """
        Build from a raw directory response.

        Accepts a list of rows or an object wrapping one under a common key
        ('participants', 'contacts', 'data', ...). Rows without an id or name
        are skipped.
        """
        rows = payload
        if isinstance(payload, dict):
            rows = next((payload[key] for key in _LIST_KEYS if isinstance(payload.get(key), list)), [])
        if not isinstance(rows, list):
            logger.warning(f"Unexpected directory payload type: {type(payload).__name__}")
            return cls()

        contacts = []
        skipped = 0
        for row in rows:
            contact = contact_from_row(row)
            if contact is None:
                skipped += 1
                continue
            contacts.append(contact)

        if skipped:
            logger.debug(f"Skipped {skipped} malformed directory rows")
        return cls(contacts)

    def __len__(self) -> int:
        return len(self._contacts)

    def __iter__(self) -> Iterator[ContactRecord]:
        return iter(self._contacts.values())

    def __contains__(self, contact_id: object) -> bool:
        return contact_id in self._contacts

    def get(self, contact_id: ContactId) -> Optional[ContactRecord]:
        contact = self._contacts.get(contact_id)
        if contact is None:
            coerced = coerce_contact_id(contact_id)
            if coerced is not None:
                contact = self._contacts.get(coerced)
        return contact

    def add(self, contact: ContactRecord) -> None:
        """Index a contact created during this request."""
        self._contacts[contact.id] = contact
        self._normalized[contact.id] = normalize_name(contact.name)

    def match(self, name: str, top_n: int = 5) -> list[MatchCandidate]:
        entries = ((contact, self._normalized[contact.id]) for contact in self._contacts.values())
        return rank(normalize_name(name), entries, top_n=top_n)
