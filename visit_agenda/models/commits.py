"""
Commit types: the single external mutation and the confirm outcome.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional, Union

from visit_agenda.models.availability import AvailabilityResult
from visit_agenda.models.contacts import ContactId
from visit_agenda.models.drafts import EventDraft

CommitOperation = Literal["create", "update", "cancel"]
ConfirmStatus = Literal[
    "created",
    "updated",
    "cancelled",
    "not_found",
    "conflict",
    "exhausted",
    "needs_disambiguation",
    "invalid",
    "failed",
]


@dataclass
class CalendarEventPayload:
    """Event data sent to the calendar mutation service on create."""

    title: str
    start: datetime
    stop: datetime
    location: str = ""
    description: str = ""
    participant_ids: list[ContactId] = field(default_factory=list)
    organizer_id: Optional[ContactId] = None


@dataclass
class CommitResult:
    """A mutation the calendar accepted."""

    operation: CommitOperation
    event_id: Optional[ContactId] = None
    response: Any = None
    success: bool = True


@dataclass
class CommitFailure:
    """
    A mutation the calendar rejected or never received.

    Carries the upstream status/body so the caller can decide on a manual retry.
    """

    operation: CommitOperation
    message: str
    status_code: Optional[int] = None
    body: Optional[str] = None
    retryable: bool = False
    success: bool = False


CommitOutcome = Union[CommitResult, CommitFailure]


@dataclass
class ConfirmSummary:
    """Human-readable recap of a created event."""

    title: str
    start: datetime
    stop: datetime
    location: str
    participants: str
    participant_ids: list[ContactId] = field(default_factory=list)
    event_id: Optional[ContactId] = None


@dataclass
class ConfirmOutcome:
    """
    Result of a confirmation.

    Statuses:
    - created: event committed, summary set
    - updated / cancelled: an existing event was changed, commit set
    - not_found: the event to update/cancel could not be identified
    - conflict: requested slot busy, suggestion holds the free slot found
    - exhausted: every attempt conflicted; accept, force or cancel
    - needs_disambiguation: ambiguous participants remain
    - invalid: the draft lacks a start/stop
    - failed: the commit itself failed, failure set
    """

    status: ConfirmStatus
    draft: EventDraft
    message: str = ""
    summary: Optional[ConfirmSummary] = None
    availability: Optional[AvailabilityResult] = None
    failure: Optional[CommitFailure] = None
    commit: Optional[CommitResult] = None

    @property
    def success(self) -> bool:
        return self.status in ("created", "updated", "cancelled")

    @property
    def suggestion(self) -> Optional[tuple[datetime, datetime]]:
        if self.status == "conflict" and self.availability is not None:
            return (self.availability.final_start, self.availability.final_stop)
        return None
