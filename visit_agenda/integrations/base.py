"""
Collaborator protocols.

Defines the interfaces the engine needs from the outside world (extractor,
contact directory, availability, event lookup, calendar mutations, contact
creation). The webhook repository implements all of them; tests substitute
fakes.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Any, Optional, Protocol

from visit_agenda.models import (
    CalendarEventPayload,
    ContactId,
    ContactRecord,
    EventMatchQuery,
)


class ExtractionService(Protocol):
    """LLM-backed raw text extractor."""

    @abstractmethod
    async def extract(self, text: str, reference_now: datetime) -> Any:
        """
        Extract appointment fields from dictated text.

        Args:
            text: Dictated text
            reference_now: Instant the extractor resolves relative dates against

        Returns:
            Raw answer (object, array or text); see services.extraction

        Raises:
            ExtractionUnavailable: If the extractor cannot be used
        """
        ...


class DirectoryService(Protocol):
    """External contact directory."""

    @abstractmethod
    async def list_contacts(self) -> list[ContactRecord]:
        """
        Fetch the current contact list.

        Raises:
            DirectoryUnavailable: If the directory cannot be fetched
        """
        ...


class AvailabilityService(Protocol):
    """Free/busy check for a participant set."""

    @abstractmethod
    async def is_available(
        self,
        participant_ids: list[ContactId],
        start: datetime,
        stop: datetime,
    ) -> bool:
        """
        Check whether every participant is free over [start, stop).

        Returns:
            True if the window is free for all participants
        """
        ...


class EventLookupService(Protocol):
    """Find an existing event without knowing its id."""

    @abstractmethod
    async def find_events(self, query: EventMatchQuery) -> list[ContactId]:
        """
        Find events starting at query.original_start with the given participants.

        Returns:
            Ids of matching events; empty when nothing matched
        """
        ...


class CalendarMutationService(Protocol):
    """The irreversible calendar operations."""

    @abstractmethod
    async def create_event(self, payload: CalendarEventPayload) -> Any:
        """Create an event; returns the raw upstream answer."""
        ...

    @abstractmethod
    async def update_event(self, event_id: ContactId, fields: dict[str, Any]) -> Any:
        """Update an event; returns the raw upstream answer."""
        ...

    @abstractmethod
    async def delete_event(self, event_id: ContactId) -> Any:
        """Delete an event; returns the raw upstream answer."""
        ...


class ContactCreationService(Protocol):
    """Create a contact for a name the directory does not know."""

    @abstractmethod
    async def create_contact(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> ContactRecord:
        """
        Create a contact.

        Returns:
            The created contact with its directory id
        """
        ...
