"""
Response builder utilities for mapping domain results to API models.

Also rebuilds an EventDraft from the copy the client sends back on confirm.
"""

from datetime import datetime, tzinfo
from typing import Optional

from visit_agenda.api.models import (
    AttemptModel,
    AvailabilityResponse,
    CandidateModel,
    CommitResponse,
    ConfirmRequest,
    ConfirmResponse,
    DraftResponse,
    EventMatchModel,
    EventModel,
    FailureModel,
    ParticipantModel,
    ProposedContactModel,
    SlotModel,
    SummaryModel,
)
from visit_agenda.models import (
    AvailabilityResult,
    CommitFailure,
    CommitOutcome,
    ConfirmOutcome,
    EventDraft,
    EventMatchQuery,
    MatchCandidate,
    ParticipantMatch,
    ProposedContact,
)
from visit_agenda.services.directory import coerce_contact_id


def localize(dt: Optional[datetime], tz: tzinfo) -> Optional[datetime]:
    """Naive API datetimes are wall-clock times in the configured timezone."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


# =============================================================================
# Drafts
# =============================================================================


def build_draft_response(draft: EventDraft) -> DraftResponse:
    """Serialize a draft for review."""
    event_match = None
    if draft.event_match is not None:
        event_match = EventMatchModel(
            original_start=draft.event_match.original_start,
            participant_ids=draft.event_match.participant_ids,
            keywords=draft.event_match.keywords,
        )

    return DraftResponse(
        event=EventModel(
            intent=draft.intent,
            title=draft.title,
            start=draft.start,
            stop=draft.stop,
            location=draft.location,
            description=draft.description,
            event_id=draft.event_id,
            event_match=event_match,
        ),
        participants=[_participant_model(p) for p in draft.participants],
        participant_ids=draft.participant_ids,
        warnings=list(draft.warnings),
        needs_disambiguation=draft.needs_disambiguation,
        duration_minutes=draft.duration_minutes,
    )


def _participant_model(participant: ParticipantMatch) -> ParticipantModel:
    proposed = None
    if participant.proposed_contact is not None:
        proposed = ProposedContactModel(
            name=participant.proposed_contact.name,
            email=participant.proposed_contact.email,
            phone=participant.proposed_contact.phone,
        )
    return ParticipantModel(
        input_name=participant.input_name,
        status=participant.status,
        score=participant.score,
        resolved_id=participant.resolved_id,
        resolved_name=participant.resolved_name,
        candidates=[CandidateModel(id=c.id, name=c.name, score=c.score) for c in participant.candidates],
        proposed_contact=proposed,
        needs_contact_creation=participant.needs_contact_creation,
    )


def draft_from_request(request: ConfirmRequest, tz: tzinfo) -> EventDraft:
    """
    Rebuild the draft the client reviewed.

    Selections are applied afterwards by the caller (they may raise).
    Participants go through EventDraft.add_participant, so a contact sent
    twice is merged.

    Raises:
        ValueError: If a matched participant has no contact id
    """
    event = request.event
    event_match = None
    if event.event_match is not None:
        event_match = EventMatchQuery(
            original_start=localize(event.event_match.original_start, tz),
            participant_ids=[coerce_contact_id(i) for i in event.event_match.participant_ids],
            keywords=event.event_match.keywords,
        )

    draft = EventDraft(
        intent=event.intent,
        start=localize(event.start, tz),
        stop=localize(event.stop, tz),
        title=event.title,
        description=event.description,
        location=event.location,
        warnings=list(request.warnings),
        event_id=coerce_contact_id(event.event_id),
        event_match=event_match,
    )

    for p in request.participants:
        draft.add_participant(
            ParticipantMatch(
                input_name=p.input_name,
                status=p.status,
                score=p.score,
                resolved_id=coerce_contact_id(p.resolved_id),
                resolved_name=p.resolved_name,
                candidates=[
                    MatchCandidate(id=coerce_contact_id(c.id), name=c.name, score=c.score)
                    for c in p.candidates
                ],
                proposed_contact=(
                    ProposedContact(
                        name=p.proposed_contact.name,
                        email=p.proposed_contact.email,
                        phone=p.proposed_contact.phone,
                    )
                    if p.proposed_contact
                    else None
                ),
            )
        )

    return draft


# =============================================================================
# Availability & commits
# =============================================================================


def build_availability_response(result: AvailabilityResult) -> AvailabilityResponse:
    return AvailabilityResponse(
        success=result.success,
        attempts=result.attempts,
        start=result.final_start,
        stop=result.final_stop,
        requested_start=result.requested_start,
        requested_stop=result.requested_stop,
        message=result.message,
        history=[
            AttemptModel(
                number=a.number,
                start=a.start,
                stop=a.stop,
                outcome=a.outcome,
                detail=a.detail,
            )
            for a in result.history
        ],
    )


def _failure_model(failure: Optional[CommitFailure]) -> Optional[FailureModel]:
    if failure is None:
        return None
    return FailureModel(
        message=failure.message,
        status_code=failure.status_code,
        body=failure.body,
        retryable=failure.retryable,
    )


def build_confirm_response(outcome: ConfirmOutcome) -> ConfirmResponse:
    """
    Serialize a confirmation outcome.

    The draft is echoed back unless the event was created.
    """
    summary = None
    if outcome.summary is not None:
        summary = SummaryModel(
            title=outcome.summary.title,
            start=outcome.summary.start,
            stop=outcome.summary.stop,
            location=outcome.summary.location,
            participants=outcome.summary.participants,
            participant_ids=outcome.summary.participant_ids,
            event_id=outcome.summary.event_id,
        )

    suggestion = None
    if outcome.suggestion is not None:
        start, stop = outcome.suggestion
        suggestion = SlotModel(start=start, stop=stop)

    return ConfirmResponse(
        success=outcome.success,
        status=outcome.status,
        message=outcome.message,
        summary=summary,
        conflict=outcome.status == "conflict",
        suggestion=suggestion,
        availability=build_availability_response(outcome.availability) if outcome.availability else None,
        failure=_failure_model(outcome.failure),
        commit=build_commit_response(outcome.commit) if outcome.commit else None,
        draft=None if outcome.success else build_draft_response(outcome.draft),
    )


def build_commit_response(outcome: CommitOutcome) -> CommitResponse:
    if isinstance(outcome, CommitFailure):
        return CommitResponse(
            success=False,
            operation=outcome.operation,
            failure=_failure_model(outcome),
        )
    return CommitResponse(
        success=True,
        operation=outcome.operation,
        event_id=outcome.event_id,
    )
