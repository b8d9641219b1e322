"""
Event draft types.

Entities:
- RawExtraction: normalized view of the extractor's best-effort guess
- EventMatchQuery: how to find an existing event without its id
- EventDraft: unpersisted, warning-annotated event under preparation

Lifecycle of an EventDraft:
1. built fresh by the draft builder for one prepare request
2. mutated in place while the user disambiguates or accepts a slot
3. discarded once a commit attempt returns
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal, Optional

from visit_agenda.models.contacts import ContactId, ContactRecord, ParticipantMatch

if TYPE_CHECKING:
    from visit_agenda.models.availability import AvailabilityResult

Intent = Literal["create", "update", "cancel"]
PayloadKind = Literal["structured", "freeform", "empty"]


@dataclass
class EventMatchHint:
    """Extractor hints identifying the event an update/cancel refers to."""

    original_start: Optional[str] = None
    original_stop: Optional[str] = None
    keywords: list[str] = field(default_factory=list)
    participants: list[str] = field(default_factory=list)


@dataclass
class RawExtraction:
    """
    Extractor output after the single structured/freeform conversion point.

    Text fields are kept as fragments; the temporal normalizer turns them
    into datetimes.
    """

    payload_kind: PayloadKind = "empty"
    participants: list[str] = field(default_factory=list)
    start_text: Optional[str] = None
    stop_text: Optional[str] = None
    duration_text: Optional[str] = None
    title: Optional[str] = None
    description: str = ""
    location: str = ""
    intent_hint: Optional[str] = None
    event_match: EventMatchHint = field(default_factory=EventMatchHint)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def has_time(self) -> bool:
        return bool(self.start_text or self.stop_text)


@dataclass
class EventMatchQuery:
    """Lookup key for an existing event when no id is known."""

    original_start: datetime
    participant_ids: list[ContactId]
    keywords: Optional[list[str]] = None


@dataclass
class EventDraft:
    """Structured, not-yet-committed event built from dictated text."""

    intent: Intent = "create"
    participants: list[ParticipantMatch] = field(default_factory=list)
    start: Optional[datetime] = None
    stop: Optional[datetime] = None
    title: str = ""
    description: str = ""
    location: str = ""
    warnings: list[str] = field(default_factory=list)
    raw_extraction: RawExtraction = field(default_factory=RawExtraction)
    event_id: Optional[ContactId] = None
    event_match: Optional[EventMatchQuery] = None
    source_text: str = ""

    @property
    def participant_ids(self) -> list[ContactId]:
        """Resolved contact ids, in mention order."""
        return [p.resolved_id for p in self.participants if p.is_matched]

    @property
    def ambiguous(self) -> list[ParticipantMatch]:
        return [p for p in self.participants if p.status == "ambiguous"]

    @property
    def unmatched(self) -> list[ParticipantMatch]:
        return [p for p in self.participants if p.status == "unmatched"]

    @property
    def needs_disambiguation(self) -> bool:
        return bool(self.ambiguous)

    @property
    def has_time(self) -> bool:
        return self.start is not None and self.stop is not None

    @property
    def duration_minutes(self) -> Optional[int]:
        if not self.has_time:
            return None
        return int((self.stop - self.start).total_seconds() // 60)

    def add_warning(self, message: str) -> None:
        """Append a warning once; warnings are additive."""
        if message not in self.warnings:
            self.warnings.append(message)

    def find_participant(self, input_name: str) -> Optional[ParticipantMatch]:
        for participant in self.participants:
            if participant.input_name == input_name:
                return participant
        return None

    def add_participant(self, participant: ParticipantMatch) -> ParticipantMatch:
        """
        Append a mention; a matched one whose contact is already in the
        draft is merged into the existing entry.

        Raises:
            ValueError: If a matched mention has no contact id
        """
        if participant.is_matched:
            if participant.resolved_id is None:
                raise ValueError(f"Matched participant '{participant.input_name}' has no contact id")
            existing = next(
                (p for p in self.participants if p.is_matched and p.resolved_id == participant.resolved_id),
                None,
            )
            if existing is not None:
                self.add_warning(f"Participant en double fusionné: {participant.input_name}")
                return existing

        self.participants.append(participant)
        return participant

    def resolve_participant(self, input_name: str, contact_id: ContactId) -> ParticipantMatch:
        """
        Apply the user's choice for an ambiguous or unmatched mention.

        When the chosen contact is already a participant, the mention is
        collapsed into the existing entry.

        Raises:
            KeyError: If no mention has this input name
            ValueError: If contact_id is not one of the mention's candidates
        """
        participant = self.find_participant(input_name)
        if participant is None:
            raise KeyError(input_name)

        chosen = next((c for c in participant.candidates if c.id == contact_id), None)
        if chosen is None:
            raise ValueError(f"Contact {contact_id} is not a candidate for '{input_name}'")

        return self._resolve(participant, chosen.id, chosen.name)

    def attach_contact(self, input_name: str, contact: ContactRecord) -> ParticipantMatch:
        """
        Bind a mention to a contact created for it.

        Raises:
            KeyError: If no mention has this input name
        """
        participant = self.find_participant(input_name)
        if participant is None:
            raise KeyError(input_name)
        return self._resolve(participant, contact.id, contact.name)

    def _resolve(self, participant: ParticipantMatch, contact_id: ContactId, name: str) -> ParticipantMatch:
        existing = next(
            (p for p in self.participants if p is not participant and p.resolved_id == contact_id),
            None,
        )
        if existing is not None:
            self.participants.remove(participant)
            self.add_warning(f"Participant en double fusionné: {participant.input_name}")
            return existing

        participant.mark_resolved(contact_id, name)
        return participant

    def accept_suggestion(self, result: "AvailabilityResult") -> None:
        """Move the draft to the slot proposed by the availability search."""
        self.start = result.final_start
        self.stop = result.final_stop
