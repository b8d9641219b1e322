"""
Domain types for the Visit Agenda engine.

Plain dataclasses; nothing here is persisted by the engine.
"""

from visit_agenda.models.contacts import (
    ContactId,
    ContactRecord,
    MatchCandidate,
    MatchStatus,
    ParticipantMatch,
    ProposedContact,
)
from visit_agenda.models.drafts import (
    EventDraft,
    EventMatchHint,
    EventMatchQuery,
    Intent,
    RawExtraction,
)
from visit_agenda.models.availability import (
    AttemptOutcome,
    AvailabilityAttempt,
    AvailabilityResult,
)
from visit_agenda.models.commits import (
    CalendarEventPayload,
    CommitFailure,
    CommitOperation,
    CommitOutcome,
    CommitResult,
    ConfirmOutcome,
    ConfirmSummary,
)

__all__ = [
    # Contacts
    "ContactId",
    "ContactRecord",
    "MatchCandidate",
    "MatchStatus",
    "ParticipantMatch",
    "ProposedContact",
    # Drafts
    "EventDraft",
    "EventMatchHint",
    "EventMatchQuery",
    "Intent",
    "RawExtraction",
    # Availability
    "AttemptOutcome",
    "AvailabilityAttempt",
    "AvailabilityResult",
    # Commits
    "CalendarEventPayload",
    "CommitFailure",
    "CommitOperation",
    "CommitOutcome",
    "CommitResult",
    "ConfirmOutcome",
    "ConfirmSummary",
]
