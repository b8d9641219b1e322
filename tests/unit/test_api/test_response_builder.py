"""
Unit tests for API response builder.

Tests mapping of drafts and outcomes to API responses, and rebuilding a
draft from a confirm request.
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from visit_agenda.api.models import ConfirmRequest
from visit_agenda.api.response_builder import (
    build_availability_response,
    build_commit_response,
    build_confirm_response,
    build_draft_response,
    draft_from_request,
    localize,
)
from visit_agenda.models import (
    AvailabilityAttempt,
    AvailabilityResult,
    CommitFailure,
    CommitResult,
    ConfirmOutcome,
    ConfirmSummary,
    EventDraft,
    EventMatchQuery,
    MatchCandidate,
    ParticipantMatch,
    ProposedContact,
)

PARIS = ZoneInfo("Europe/Paris")
START = datetime(2025, 1, 11, 14, 0, tzinfo=PARIS)
STOP = START + timedelta(minutes=30)


def sample_draft() -> EventDraft:
    return EventDraft(
        participants=[
            ParticipantMatch(
                input_name="Jean Dupond",
                status="matched",
                score=0.91,
                resolved_id=1,
                resolved_name="Jean Dupont",
            ),
            ParticipantMatch(
                input_name="Marie M.",
                status="ambiguous",
                score=0.70,
                candidates=[
                    MatchCandidate(id=3, name="Marie Morin", score=0.70),
                    MatchCandidate(id=2, name="Marie Martin", score=0.68),
                ],
            ),
            ParticipantMatch(
                input_name="Sophie",
                status="unmatched",
                proposed_contact=ProposedContact(name="Sophie"),
            ),
        ],
        start=START,
        stop=STOP,
        title="Pansement",
        location="Domicile",
        warnings=["Participant introuvable: Sophie"],
    )


def sample_availability(success=True, offset_minutes=30) -> AvailabilityResult:
    final = START + timedelta(minutes=offset_minutes) if success else START
    return AvailabilityResult(
        requested_start=START,
        requested_stop=STOP,
        final_start=final,
        final_stop=final + timedelta(minutes=30),
        attempts=2,
        success=success,
        message="ok",
        history=[
            AvailabilityAttempt(number=1, start=START, stop=STOP, outcome="busy"),
            AvailabilityAttempt(number=2, start=STOP, stop=STOP + timedelta(minutes=30), outcome="free"),
        ],
    )


class TestLocalize:
    """Test localize function."""

    def test_none(self):
        assert localize(None, PARIS) is None

    def test_naive_is_wall_clock(self):
        assert localize(datetime(2025, 1, 11, 14, 0), PARIS) == START

    def test_aware_is_converted(self):
        result = localize(datetime(2025, 1, 11, 13, 0, tzinfo=timezone.utc), PARIS)
        assert result == START
        assert result.tzinfo is PARIS


class TestBuildDraftResponse:
    """Test build_draft_response function."""

    def test_fields(self):
        response = build_draft_response(sample_draft())

        assert response.event.title == "Pansement"
        assert response.event.intent == "create"
        assert response.participant_ids == [1]
        assert response.needs_disambiguation is True
        assert response.duration_minutes == 30
        assert response.warnings == ["Participant introuvable: Sophie"]

    def test_participants(self):
        matched, ambiguous, unmatched = build_draft_response(sample_draft()).participants

        assert matched.resolved_name == "Jean Dupont"
        assert [c.id for c in ambiguous.candidates] == [3, 2]
        assert unmatched.proposed_contact.name == "Sophie"
        assert unmatched.needs_contact_creation is True

    def test_event_match(self):
        draft = EventDraft(
            intent="cancel",
            event_id=9,
            event_match=EventMatchQuery(original_start=START, participant_ids=[1]),
        )

        response = build_draft_response(draft)

        assert response.event.event_id == 9
        assert response.event.event_match.original_start == START
        assert response.event.event_match.participant_ids == [1]


class TestDraftFromRequest:
    """Test draft_from_request function."""

    def test_round_trip_through_json(self):
        """A draft sent to the client and back is the same draft."""
        original = sample_draft()
        body = build_draft_response(original).model_dump(mode="json")
        request = ConfirmRequest.model_validate({
            "event": body["event"],
            "participants": body["participants"],
            "warnings": body["warnings"],
        })

        draft = draft_from_request(request, PARIS)

        assert draft.start == START
        assert draft.stop == STOP
        assert draft.participant_ids == [1]
        assert draft.needs_disambiguation is True
        assert draft.warnings == original.warnings
        assert draft.unmatched[0].proposed_contact == ProposedContact(name="Sophie")

    def test_string_ids_coerced(self):
        request = ConfirmRequest.model_validate({
            "event": {"start": "2025-01-11T14:00:00", "stop": "2025-01-11T14:30:00", "event_id": "9"},
            "participants": [
                {"input_name": "Jean", "status": "matched", "resolved_id": "1", "resolved_name": "Jean Dupont"},
            ],
        })

        draft = draft_from_request(request, PARIS)

        assert draft.event_id == 9
        assert draft.participant_ids == [1]
        assert draft.start == START

    def test_duplicate_contact_collapsed(self):
        jean = {"input_name": "Jean", "status": "matched", "resolved_id": 1, "resolved_name": "Jean Dupont"}
        request = ConfirmRequest.model_validate({
            "event": {},
            "participants": [jean, {**jean, "input_name": "Jean Dupond"}],
        })

        draft = draft_from_request(request, PARIS)

        assert draft.participant_ids == [1]
        assert len(draft.participants) == 1
        assert "Participant en double fusionné: Jean Dupond" in draft.warnings

    def test_matched_without_id_rejected(self):
        request = ConfirmRequest.model_validate({
            "event": {},
            "participants": [{"input_name": "Jean", "status": "matched", "score": 1.0}],
        })

        with pytest.raises(ValueError):
            draft_from_request(request, PARIS)


class TestBuildConfirmResponse:
    """Test build_confirm_response function."""

    def test_created(self):
        outcome = ConfirmOutcome(
            status="created",
            draft=sample_draft(),
            message="Événement créé",
            summary=ConfirmSummary(
                title="Pansement",
                start=START,
                stop=STOP,
                location="Domicile",
                participants="Jean Dupont",
                participant_ids=[1],
                event_id=101,
            ),
        )

        response = build_confirm_response(outcome)

        assert response.success is True
        assert response.summary.event_id == 101
        assert response.draft is None
        assert response.conflict is False

    def test_conflict(self):
        outcome = ConfirmOutcome(status="conflict", draft=sample_draft(), availability=sample_availability())

        response = build_confirm_response(outcome)

        assert response.success is False
        assert response.conflict is True
        assert response.suggestion.start == START + timedelta(minutes=30)
        assert response.availability.attempts == 2
        assert response.draft is not None

    def test_failed(self):
        outcome = ConfirmOutcome(
            status="failed",
            draft=sample_draft(),
            failure=CommitFailure(operation="create", message="Webhook error (500)", status_code=500, body="boom"),
        )

        response = build_confirm_response(outcome)

        assert response.failure.status_code == 500
        assert response.failure.body == "boom"
        assert response.suggestion is None

    def test_cancelled_carries_commit(self):
        outcome = ConfirmOutcome(
            status="cancelled",
            draft=EventDraft(intent="cancel", event_id=77),
            message="Événement annulé",
            commit=CommitResult(operation="cancel", event_id=77),
        )

        response = build_confirm_response(outcome)

        assert response.success is True
        assert response.commit.operation == "cancel"
        assert response.commit.event_id == 77
        assert response.draft is None

    def test_not_found_echoes_draft(self):
        draft = EventDraft(
            intent="cancel",
            event_match=EventMatchQuery(original_start=START, participant_ids=[1]),
        )

        response = build_confirm_response(ConfirmOutcome(status="not_found", draft=draft))

        assert response.success is False
        assert response.commit is None
        assert response.draft.event.intent == "cancel"


class TestBuildAvailabilityResponse:
    def test_history(self):
        response = build_availability_response(sample_availability())

        assert response.success is True
        assert response.start == START + timedelta(minutes=30)
        assert response.requested_start == START
        assert [a.outcome for a in response.history] == ["busy", "free"]


class TestBuildCommitResponse:
    @pytest.mark.parametrize("operation", ["update", "cancel"])
    def test_success(self, operation):
        response = build_commit_response(CommitResult(operation=operation, event_id=7))
        assert response.success is True
        assert response.operation == operation
        assert response.event_id == 7
        assert response.failure is None

    def test_failure(self):
        response = build_commit_response(
            CommitFailure(operation="cancel", message="Webhook error (404)", status_code=404, body="missing")
        )
        assert response.success is False
        assert response.event_id is None
        assert response.failure.status_code == 404
