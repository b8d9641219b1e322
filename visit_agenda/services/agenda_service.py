"""
Agenda service - request-scoped orchestration of the engine.

Wires the draft builder, availability resolver, intent resolver and commit
gateway to the collaborators injected for one request:

- prepare: directory fetch -> draft build -> best-effort event location
- confirm: disambiguation guard -> availability search -> create
- update / cancel: locate event -> single mutation
- find_event / list_participants / create_contact: direct collaborator use

Every collaborator call runs under the request deadline. Nothing is cached
between requests.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Awaitable, Optional, TypeVar

from visit_agenda.config import Settings, get_settings
from visit_agenda.exceptions import DeadlineExceeded, DirectoryUnavailable, EventNotFound
from visit_agenda.integrations.base import (
    AvailabilityService,
    CalendarMutationService,
    ContactCreationService,
    DirectoryService,
    EventLookupService,
    ExtractionService,
)
from visit_agenda.models import (
    AvailabilityResult,
    CalendarEventPayload,
    CommitFailure,
    CommitOutcome,
    ConfirmOutcome,
    ConfirmSummary,
    ContactId,
    ContactRecord,
    EventDraft,
    EventMatchQuery,
)
from visit_agenda.services.availability import AvailabilityResolver
from visit_agenda.services.commit import CommitGateway
from visit_agenda.services.directory import ParticipantDirectory
from visit_agenda.services.draft_builder import EventDraftBuilder
from visit_agenda.services.intent import IntentResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")

WARNING_DIRECTORY_UNAVAILABLE = "Annuaire des participants indisponible"
WARNING_DEADLINE = "Délai de traitement dépassé, brouillon partiel"

NO_LOCATION = "Non spécifié"
NO_PARTICIPANTS = "Aucun participant"


class Deadline:
    """
    Overall time budget of one request.

    run() bounds each awaited call by the remaining budget.
    """

    def __init__(self, seconds: float):
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds

    @property
    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining <= 0

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await within the remaining budget.

        Raises:
            DeadlineExceeded: If the budget runs out first
        """
        if self.expired:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise DeadlineExceeded(f"Request deadline of {self.seconds}s exceeded")
        try:
            return await asyncio.wait_for(awaitable, timeout=self.remaining)
        except asyncio.TimeoutError as e:
            raise DeadlineExceeded(f"Request deadline of {self.seconds}s exceeded", original_error=e) from e


@dataclass
class AgendaCollaborators:
    """External services used for one request."""

    extractor: ExtractionService
    directory: DirectoryService
    availability: AvailabilityService
    lookup: EventLookupService
    calendar: CalendarMutationService
    contacts: ContactCreationService

    @classmethod
    def from_repository(cls, repository: Any) -> "AgendaCollaborators":
        """Use one object implementing every collaborator protocol."""
        return cls(
            extractor=repository,
            directory=repository,
            availability=repository,
            lookup=repository,
            calendar=repository,
            contacts=repository,
        )


class AgendaService:
    """
    Request-scoped agenda engine.

    Create one per request; its deadline starts at construction.
    """

    def __init__(
        self,
        collaborators: AgendaCollaborators,
        settings: Optional[Settings] = None,
        deadline: Optional[Deadline] = None,
    ):
        self.collaborators = collaborators
        self.settings = settings or get_settings()
        self.deadline = deadline or Deadline(self.settings.request_deadline_seconds)

        self.builder = EventDraftBuilder(collaborators.extractor, self.settings)
        self.availability = AvailabilityResolver.from_settings(collaborators.availability, self.settings)
        self.intents = IntentResolver(collaborators.lookup)
        self.gateway = CommitGateway(collaborators.calendar)

    def now(self) -> datetime:
        return datetime.now(self.settings.tzinfo)

    # =========================================================================
    # Preparation
    # =========================================================================

    async def prepare(self, text: str, reference_now: Optional[datetime] = None) -> EventDraft:
        """
        Build a draft from dictated text.

        Never raises on collaborator failure: an unreachable directory, an
        unavailable extractor, an unknown original event or an exhausted
        deadline all become warnings on the returned draft.
        """
        reference_now = reference_now or self.now()
        warnings: list[str] = []

        directory = ParticipantDirectory()
        try:
            directory = ParticipantDirectory(await self.deadline.run(self.collaborators.directory.list_contacts()))
        except DirectoryUnavailable as e:
            logger.warning(f"Directory unavailable: {e}")
            warnings.append(WARNING_DIRECTORY_UNAVAILABLE)
        except DeadlineExceeded:
            logger.warning("Deadline exceeded while fetching the directory")
            warnings.append(WARNING_DEADLINE)

        if WARNING_DEADLINE in warnings:
            draft = self.builder.build_from_payload(text, None, directory, reference_now)
        else:
            try:
                draft = await self.deadline.run(self.builder.build(text, directory, reference_now))
            except DeadlineExceeded:
                logger.warning("Deadline exceeded while building the draft")
                draft = self.builder.build_from_payload(text, None, directory, reference_now)
                warnings.append(WARNING_DEADLINE)

        for warning in reversed(warnings):
            if warning not in draft.warnings:
                draft.warnings.insert(0, warning)

        if draft.intent != "create" and draft.event_match is not None and not self.deadline.expired:
            try:
                draft.event_id = await self.deadline.run(self.intents.locate(query=draft.event_match))
            except EventNotFound as e:
                draft.add_warning(e.message)
            except DeadlineExceeded:
                draft.add_warning(WARNING_DEADLINE)

        logger.info(
            f"Prepared {draft.intent} draft: {len(draft.participants)} participants, "
            f"start={draft.start.isoformat() if draft.start else None}, {len(draft.warnings)} warnings"
        )
        return draft

    # =========================================================================
    # Availability & creation
    # =========================================================================

    async def check_availability(
        self,
        participant_ids: list[ContactId],
        start: datetime,
        stop: datetime,
        max_attempts: Optional[int] = None,
    ) -> AvailabilityResult:
        """Run the bounded availability search under the request deadline."""
        return await self.deadline.run(
            self.availability.resolve(participant_ids, start, stop, max_attempts=max_attempts)
        )

    async def confirm(self, draft: EventDraft, skip_availability_check: bool = False) -> ConfirmOutcome:
        """
        Commit a reviewed draft.

        Update and cancel drafts are applied to the existing event instead
        (see commit_change); they never create.

        Outcomes:
        - needs_disambiguation: an ambiguous mention remains
        - updated / cancelled: the existing event was changed
        - not_found: the event to change could not be identified
        - invalid: start/stop missing or inverted
        - exhausted: every availability attempt conflicted
        - conflict: the requested slot is busy; suggestion holds a free one
        - failed: the calendar rejected the creation
        - created: done, summary set
        """
        if draft.needs_disambiguation:
            names = ", ".join(p.input_name for p in draft.ambiguous)
            return ConfirmOutcome(
                status="needs_disambiguation",
                draft=draft,
                message=f"Participants ambigus à préciser: {names}",
            )

        if draft.intent != "create":
            return await self._confirm_change(draft)

        if not draft.has_time or draft.stop <= draft.start:
            return ConfirmOutcome(
                status="invalid",
                draft=draft,
                message="Date et heure de début et de fin requises",
            )

        availability: Optional[AvailabilityResult] = None
        if not skip_availability_check:
            availability = await self.check_availability(draft.participant_ids, draft.start, draft.stop)
            if not availability.success:
                return ConfirmOutcome(
                    status="exhausted",
                    draft=draft,
                    message=availability.message,
                    availability=availability,
                )
            if availability.suggestion_differs:
                return ConfirmOutcome(
                    status="conflict",
                    draft=draft,
                    message=(
                        "Conflit détecté, créneau proposé: "
                        f"{availability.final_start:%d/%m/%Y %H:%M} - {availability.final_stop:%H:%M}"
                    ),
                    availability=availability,
                )

        payload = CalendarEventPayload(
            title=draft.title or self.settings.default_event_title,
            start=draft.start,
            stop=draft.stop,
            location=draft.location,
            description=draft.description,
            participant_ids=draft.participant_ids,
            organizer_id=self.settings.organizer_partner_id,
        )
        outcome = await self.deadline.run(self.gateway.create(payload))

        if isinstance(outcome, CommitFailure):
            return ConfirmOutcome(
                status="failed",
                draft=draft,
                message=outcome.message,
                availability=availability,
                failure=outcome,
            )

        summary = ConfirmSummary(
            title=payload.title,
            start=payload.start,
            stop=payload.stop,
            location=payload.location or NO_LOCATION,
            participants=", ".join(p.display_name for p in draft.participants if p.is_matched) or NO_PARTICIPANTS,
            participant_ids=payload.participant_ids,
            event_id=outcome.event_id,
        )
        return ConfirmOutcome(
            status="created",
            draft=draft,
            message="Événement créé",
            summary=summary,
            availability=availability,
        )

    # =========================================================================
    # Update & cancel
    # =========================================================================

    async def update(
        self,
        fields: dict[str, Any],
        event_id: Optional[ContactId] = None,
        query: Optional[EventMatchQuery] = None,
    ) -> CommitOutcome:
        """
        Update an existing event.

        Raises:
            EventNotFound: If the event cannot be identified
        """
        target = await self.deadline.run(self.intents.locate(event_id=event_id, query=query))
        return await self.deadline.run(self.gateway.update(target, fields))

    async def cancel(
        self,
        event_id: Optional[ContactId] = None,
        query: Optional[EventMatchQuery] = None,
    ) -> CommitOutcome:
        """
        Cancel (delete) an existing event.

        Raises:
            EventNotFound: If the event cannot be identified
        """
        target = await self.deadline.run(self.intents.locate(event_id=event_id, query=query))
        return await self.deadline.run(self.gateway.cancel(target))

    async def commit_change(self, draft: EventDraft) -> CommitOutcome:
        """
        Apply an update or cancel draft.

        The draft is not modified; EventNotFound leaves it as it was. The
        lookup uses the draft's current participants, so a mention resolved
        after preparation takes part in it.

        Raises:
            ValueError: If the draft is a creation
            EventNotFound: If the event cannot be identified
        """
        query = draft.event_match
        if query is not None and draft.participant_ids and query.participant_ids != draft.participant_ids:
            query = replace(query, participant_ids=draft.participant_ids)

        if draft.intent == "cancel":
            return await self.cancel(event_id=draft.event_id, query=query)
        if draft.intent == "update":
            return await self.update(draft_fields(draft), event_id=draft.event_id, query=query)
        raise ValueError("commit_change only handles update and cancel drafts; use confirm()")

    async def _confirm_change(self, draft: EventDraft) -> ConfirmOutcome:
        if draft.intent == "update" and not draft_fields(draft):
            return ConfirmOutcome(
                status="invalid",
                draft=draft,
                message="Aucune modification à appliquer",
            )

        try:
            outcome = await self.commit_change(draft)
        except EventNotFound as e:
            logger.info(f"Confirm {draft.intent}: {e.message}")
            return ConfirmOutcome(status="not_found", draft=draft, message=e.message)

        if isinstance(outcome, CommitFailure):
            return ConfirmOutcome(
                status="failed",
                draft=draft,
                message=outcome.message,
                failure=outcome,
            )

        if outcome.operation == "cancel":
            return ConfirmOutcome(status="cancelled", draft=draft, message="Événement annulé", commit=outcome)
        return ConfirmOutcome(status="updated", draft=draft, message="Événement modifié", commit=outcome)

    async def find_event(self, query: EventMatchQuery) -> ContactId:
        """
        Raises:
            EventNotFound: If zero or several events match
        """
        return await self.deadline.run(self.intents.locate(query=query))

    # =========================================================================
    # Contacts
    # =========================================================================

    async def list_participants(self) -> list[ContactRecord]:
        """
        Raises:
            DirectoryUnavailable: If the directory cannot be fetched
        """
        return await self.deadline.run(self.collaborators.directory.list_contacts())

    async def create_contact(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> ContactRecord:
        contact = await self.deadline.run(self.collaborators.contacts.create_contact(name, email=email, phone=phone))
        logger.info(f"Created contact {contact.id} '{contact.name}'")
        return contact


def draft_fields(draft: EventDraft) -> dict[str, Any]:
    """Fields of an update draft worth sending (unset ones are left alone)."""
    fields: dict[str, Any] = {}
    if draft.start is not None:
        fields["start"] = draft.start
    if draft.stop is not None:
        fields["stop"] = draft.stop
    if draft.raw_extraction.title:
        fields["title"] = draft.title
    if draft.location:
        fields["location"] = draft.location
    if draft.description:
        fields["description"] = draft.description
    return fields
