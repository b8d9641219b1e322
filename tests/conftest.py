"""
Pytest configuration and fixtures for Visit Agenda tests.

Provides settings, a sample directory and an in-memory fake implementing
every collaborator protocol.
"""

from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

import pytest

from visit_agenda.config import Settings
from visit_agenda.exceptions import ExtractionUnavailable
from visit_agenda.integrations.base import (
    AvailabilityService,
    CalendarMutationService,
    ContactCreationService,
    DirectoryService,
    EventLookupService,
    ExtractionService,
)
from visit_agenda.models import (
    CalendarEventPayload,
    ContactId,
    ContactRecord,
    EventMatchQuery,
)
from visit_agenda.services import (
    AgendaCollaborators,
    AgendaService,
    Deadline,
    ParticipantDirectory,
)

PARIS = ZoneInfo("Europe/Paris")


class FakeAgenda(
    ExtractionService,
    DirectoryService,
    AvailabilityService,
    EventLookupService,
    CalendarMutationService,
    ContactCreationService,
):
    """
    Scriptable collaborator double.

    - extraction: answer returned by extract(), or an exception to raise
    - availability: answers consumed in order (bool or exception); last repeats
    - lookup: event ids returned by find_events(), or an exception
    - calendar_error: exception raised by every mutation
    """

    def __init__(
        self,
        contacts: Optional[list[ContactRecord]] = None,
        extraction: Any = None,
        availability: Optional[list[Any]] = None,
        lookup: Any = None,
        calendar_error: Optional[Exception] = None,
        directory_error: Optional[Exception] = None,
    ):
        self.contacts = list(contacts or [])
        self.extraction = extraction
        self.availability = list(availability or [True])
        self.lookup = lookup if lookup is not None else []
        self.calendar_error = calendar_error
        self.directory_error = directory_error

        self.availability_calls: list[tuple[list[ContactId], datetime, datetime]] = []
        self.lookup_calls: list[EventMatchQuery] = []
        self.created: list[CalendarEventPayload] = []
        self.updated: list[tuple[ContactId, dict]] = []
        self.deleted: list[ContactId] = []
        self.created_contacts: list[ContactRecord] = []

    async def extract(self, text: str, reference_now: datetime) -> Any:
        if isinstance(self.extraction, Exception):
            raise self.extraction
        return self.extraction

    async def list_contacts(self) -> list[ContactRecord]:
        if self.directory_error is not None:
            raise self.directory_error
        return list(self.contacts)

    async def is_available(self, participant_ids, start, stop) -> bool:
        index = min(len(self.availability_calls), len(self.availability) - 1)
        self.availability_calls.append((list(participant_ids), start, stop))
        answer = self.availability[index]
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def find_events(self, query: EventMatchQuery) -> list[ContactId]:
        self.lookup_calls.append(query)
        if isinstance(self.lookup, Exception):
            raise self.lookup
        return list(self.lookup)

    async def create_event(self, payload: CalendarEventPayload) -> Any:
        if self.calendar_error is not None:
            raise self.calendar_error
        self.created.append(payload)
        return {"id": 100 + len(self.created)}

    async def update_event(self, event_id: ContactId, fields: dict) -> Any:
        if self.calendar_error is not None:
            raise self.calendar_error
        self.updated.append((event_id, fields))
        return {"success": True}

    async def delete_event(self, event_id: ContactId) -> Any:
        if self.calendar_error is not None:
            raise self.calendar_error
        self.deleted.append(event_id)
        return {"success": True}

    async def create_contact(self, name: str, email: Optional[str] = None, phone: Optional[str] = None) -> ContactRecord:
        contact = ContactRecord(id=500 + len(self.created_contacts), name=name, email=email, phone=phone)
        self.created_contacts.append(contact)
        return contact


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only (no .env)."""
    return Settings(_env_file=None)


@pytest.fixture
def reference_now() -> datetime:
    """Friday 10 January 2025, 09:00 Paris time."""
    return datetime(2025, 1, 10, 9, 0, tzinfo=PARIS)


@pytest.fixture
def contacts() -> list[ContactRecord]:
    return [
        ContactRecord(id=1, name="Jean Dupont", email="jean@example.com"),
        ContactRecord(id=2, name="Marie Martin"),
        ContactRecord(id=3, name="Marie Morin"),
        ContactRecord(id=4, name="Dr Paul Lefèvre"),
    ]


@pytest.fixture
def directory(contacts) -> ParticipantDirectory:
    return ParticipantDirectory(contacts)


@pytest.fixture
def make_agenda(contacts):
    """Build a FakeAgenda over the sample directory; the extractor is offline unless given."""

    def _make(**kwargs) -> FakeAgenda:
        kwargs.setdefault("contacts", contacts)
        kwargs.setdefault("extraction", ExtractionUnavailable("offline"))
        return FakeAgenda(**kwargs)

    return _make


@pytest.fixture
def make_service(settings):
    """Build an AgendaService over a FakeAgenda."""

    def _make(agenda: FakeAgenda, deadline_seconds: Optional[float] = None) -> AgendaService:
        deadline = Deadline(deadline_seconds) if deadline_seconds is not None else None
        return AgendaService(AgendaCollaborators.from_repository(agenda), settings, deadline=deadline)

    return _make
