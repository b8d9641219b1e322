"""Tests for the request-scoped agenda service."""

import asyncio
import copy
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from visit_agenda.exceptions import DeadlineExceeded, DirectoryUnavailable, EventNotFound
from visit_agenda.integrations.webhooks.exceptions import WebhookHTTPError
from visit_agenda.models import EventDraft, EventMatchQuery, ParticipantMatch
from visit_agenda.services.agenda_service import (
    NO_PARTICIPANTS,
    WARNING_DEADLINE,
    WARNING_DIRECTORY_UNAVAILABLE,
    Deadline,
    draft_fields,
)
from visit_agenda.services.draft_builder import WARNING_EXTRACTION_UNAVAILABLE
from visit_agenda.services.intent import NOT_FOUND_MESSAGE

PARIS = ZoneInfo("Europe/Paris")

VISIT = {
    "participants": ["Jean Dupond"],
    "start": "demain 14h",
    "duration_minutes": 30,
    "location": "Domicile",
    "title": "Pansement",
}


def at(day, hour, minute=0) -> datetime:
    return datetime(2025, 1, day, hour, minute, tzinfo=PARIS)


class TestDeadline:
    """Tests for the request time budget."""

    @pytest.mark.asyncio
    async def test_returns_result_in_time(self):
        async def answer():
            return 42

        assert await Deadline(5).run(answer()) == 42

    @pytest.mark.asyncio
    async def test_slow_call_exceeds(self):
        with pytest.raises(DeadlineExceeded):
            await Deadline(0.01).run(asyncio.sleep(1))

    @pytest.mark.asyncio
    async def test_expired_budget_fails_immediately(self):
        deadline = Deadline(0)
        assert deadline.expired is True
        with pytest.raises(DeadlineExceeded):
            await deadline.run(asyncio.sleep(0))


class TestPrepare:
    """prepare() never raises on collaborator failure."""

    @pytest.mark.asyncio
    async def test_extractor_offline(self, make_agenda, make_service, reference_now):
        service = make_service(make_agenda())

        draft = await service.prepare("rendez-vous demain à 14h pour 30 minutes", reference_now=reference_now)

        assert draft.warnings[0] == WARNING_EXTRACTION_UNAVAILABLE
        assert draft.start == at(11, 14)
        assert draft.stop == at(11, 14, 30)

    @pytest.mark.asyncio
    async def test_directory_unavailable(self, make_agenda, make_service, reference_now):
        agenda = make_agenda(extraction=VISIT, directory_error=DirectoryUnavailable("down"))
        service = make_service(agenda)

        draft = await service.prepare("RDV demain 14h avec Jean Dupond", reference_now=reference_now)

        assert draft.warnings[0] == WARNING_DIRECTORY_UNAVAILABLE
        assert draft.participants[0].status == "unmatched"
        assert draft.start == at(11, 14)

    @pytest.mark.asyncio
    async def test_structured_extraction(self, make_agenda, make_service, reference_now):
        service = make_service(make_agenda(extraction=VISIT))

        draft = await service.prepare("RDV demain 14h avec Jean Dupond", reference_now=reference_now)

        assert draft.participant_ids == [1]
        assert draft.title == "Pansement"
        assert draft.warnings == []

    @pytest.mark.asyncio
    async def test_deadline_returns_partial_draft(self, make_agenda, make_service, reference_now):
        agenda = make_agenda()

        async def slow_extract(text, now):
            await asyncio.sleep(1)
            return VISIT

        agenda.extract = slow_extract
        service = make_service(agenda, deadline_seconds=0.05)

        draft = await service.prepare("rendez-vous demain à 14h", reference_now=reference_now)

        assert draft.warnings[0] == WARNING_DEADLINE
        assert draft.start == at(11, 14)

    @pytest.mark.asyncio
    async def test_cancel_locates_event(self, make_agenda, make_service, reference_now):
        agenda = make_agenda(extraction={"participants": ["Jean Dupont"]}, lookup=[9])
        service = make_service(agenda)

        draft = await service.prepare("annule le rendez-vous de Jean le 12 mars à 10h", reference_now=reference_now)

        assert draft.intent == "cancel"
        assert draft.event_id == 9
        query = agenda.lookup_calls[0]
        assert query.original_start == datetime(2025, 3, 12, 10, 0, tzinfo=PARIS)
        assert query.participant_ids == [1]

    @pytest.mark.asyncio
    async def test_cancel_unknown_event_warns(self, make_agenda, make_service, reference_now):
        agenda = make_agenda(extraction={"participants": ["Jean Dupont"]}, lookup=[])
        service = make_service(agenda)

        draft = await service.prepare("annule le rendez-vous de Jean le 12 mars à 10h", reference_now=reference_now)

        assert draft.event_id is None
        assert NOT_FOUND_MESSAGE in draft.warnings


class TestConfirm:
    """confirm() turns a create draft into exactly one calendar event."""

    @pytest.fixture
    def prepared(self, make_agenda, make_service, reference_now):
        """Prepare a draft over a FakeAgenda; returns (agenda, service, draft)."""

        async def _prepared(extraction=VISIT, **agenda_kwargs):
            agenda = make_agenda(extraction=extraction, **agenda_kwargs)
            service = make_service(agenda)
            draft = await service.prepare("RDV demain 14h", reference_now=reference_now)
            return agenda, service, draft

        return _prepared

    @pytest.mark.asyncio
    async def test_created(self, prepared):
        agenda, service, draft = await prepared()

        outcome = await service.confirm(draft)

        assert outcome.status == "created"
        assert outcome.success is True
        assert outcome.summary.participants == "Jean Dupont"
        assert outcome.summary.location == "Domicile"
        assert outcome.summary.event_id == 101
        assert len(agenda.created) == 1
        payload = agenda.created[0]
        assert payload.participant_ids == [1]
        assert payload.organizer_id == 3
        assert (payload.start, payload.stop) == (at(11, 14), at(11, 14, 30))

    @pytest.mark.asyncio
    async def test_conflict_suggests_next_slot(self, prepared):
        agenda, service, draft = await prepared(availability=[False, True])

        outcome = await service.confirm(draft)

        assert outcome.status == "conflict"
        assert outcome.suggestion == (at(11, 14, 30), at(11, 15))
        assert agenda.created == []

    @pytest.mark.asyncio
    async def test_accepting_suggestion_creates(self, prepared):
        agenda, service, draft = await prepared(availability=[False, True])
        outcome = await service.confirm(draft)

        draft.accept_suggestion(outcome.availability)
        second = await service.confirm(draft)

        assert second.status == "created"
        assert agenda.created[0].start == at(11, 14, 30)

    @pytest.mark.asyncio
    async def test_exhausted(self, prepared):
        agenda, service, draft = await prepared(availability=[False])

        outcome = await service.confirm(draft)

        assert outcome.status == "exhausted"
        assert outcome.availability.attempts == 3
        assert len(agenda.availability_calls) == 3
        assert agenda.created == []

    @pytest.mark.asyncio
    async def test_ambiguous_blocks(self, prepared):
        agenda, service, draft = await prepared(extraction={**VISIT, "participants": ["Marie M."]})

        outcome = await service.confirm(draft)

        assert outcome.status == "needs_disambiguation"
        assert "Marie M." in outcome.message
        assert agenda.availability_calls == []
        assert agenda.created == []

    @pytest.mark.asyncio
    async def test_resolved_ambiguity_creates(self, prepared):
        agenda, service, draft = await prepared(extraction={**VISIT, "participants": ["Marie M."]})

        draft.resolve_participant("Marie M.", 2)
        outcome = await service.confirm(draft)

        assert outcome.status == "created"
        assert agenda.created[0].participant_ids == [2]

    @pytest.mark.asyncio
    async def test_unmatched_does_not_block(self, prepared):
        """Unknown names are left out of the event rather than blocking it."""
        agenda, service, draft = await prepared(extraction={**VISIT, "participants": ["Sophie Bernard"]})

        outcome = await service.confirm(draft)

        assert outcome.status == "created"
        assert outcome.summary.participants == NO_PARTICIPANTS
        assert agenda.created[0].participant_ids == []

    @pytest.mark.asyncio
    async def test_missing_time_is_invalid(self, prepared):
        agenda, service, draft = await prepared(extraction={"participants": ["Jean Dupont"]})
        draft.start = draft.stop = None

        outcome = await service.confirm(draft)

        assert outcome.status == "invalid"
        assert agenda.created == []

    @pytest.mark.asyncio
    async def test_calendar_failure(self, prepared):
        error = WebhookHTTPError("Webhook error (500)", status_code=500, body="boom")
        agenda, service, draft = await prepared(calendar_error=error)

        outcome = await service.confirm(draft)

        assert outcome.status == "failed"
        assert outcome.failure.status_code == 500
        assert outcome.failure.body == "boom"

    @pytest.mark.asyncio
    async def test_skip_availability_check(self, prepared):
        agenda, service, draft = await prepared(availability=[False])

        outcome = await service.confirm(draft, skip_availability_check=True)

        assert outcome.status == "created"
        assert agenda.availability_calls == []


class TestConfirmChange:
    """confirm() applies update and cancel drafts to the existing event."""

    @pytest.mark.asyncio
    async def test_cancel_deletes_and_never_creates(self, make_agenda, make_service):
        agenda = make_agenda()
        draft = EventDraft(intent="cancel", start=at(11, 14), stop=at(11, 15), event_id=77)

        outcome = await make_service(agenda).confirm(draft)

        assert outcome.status == "cancelled"
        assert outcome.success is True
        assert outcome.commit.operation == "cancel"
        assert outcome.commit.event_id == 77
        assert agenda.deleted == [77]
        assert agenda.created == []
        assert agenda.availability_calls == []

    @pytest.mark.asyncio
    async def test_cancel_by_lookup(self, make_agenda, make_service):
        agenda = make_agenda(lookup=[9])
        draft = EventDraft(
            intent="cancel",
            event_match=EventMatchQuery(original_start=at(11, 14), participant_ids=[1]),
        )

        outcome = await make_service(agenda).confirm(draft)

        assert outcome.status == "cancelled"
        assert agenda.deleted == [9]
        assert agenda.created == []

    @pytest.mark.asyncio
    async def test_update_modifies_existing_event(self, make_agenda, make_service):
        agenda = make_agenda()
        draft = EventDraft(intent="update", location="Cabinet", event_id=7)

        outcome = await make_service(agenda).confirm(draft)

        assert outcome.status == "updated"
        assert outcome.commit.operation == "update"
        assert agenda.updated == [(7, {"location": "Cabinet"})]
        assert agenda.created == []

    @pytest.mark.asyncio
    async def test_update_without_changes_is_invalid(self, make_agenda, make_service):
        agenda = make_agenda()

        outcome = await make_service(agenda).confirm(EventDraft(intent="update", event_id=7))

        assert outcome.status == "invalid"
        assert agenda.updated == []

    @pytest.mark.asyncio
    async def test_unknown_event_keeps_draft(self, make_agenda, make_service):
        agenda = make_agenda(lookup=[])
        draft = EventDraft(
            intent="cancel",
            event_match=EventMatchQuery(original_start=at(11, 14), participant_ids=[1]),
        )
        before = copy.deepcopy(draft)

        outcome = await make_service(agenda).confirm(draft)

        assert outcome.status == "not_found"
        assert outcome.message == NOT_FOUND_MESSAGE
        assert outcome.draft == before
        assert agenda.deleted == []
        assert agenda.created == []

    @pytest.mark.asyncio
    async def test_rejected_cancel_is_failed(self, make_agenda, make_service):
        error = WebhookHTTPError("Webhook error (404)", status_code=404, body="gone")
        agenda = make_agenda(calendar_error=error)

        outcome = await make_service(agenda).confirm(EventDraft(intent="cancel", event_id=77))

        assert outcome.status == "failed"
        assert outcome.failure.status_code == 404
        assert agenda.created == []

    @pytest.mark.asyncio
    async def test_lookup_uses_resolved_participants(self, make_agenda, make_service):
        """A mention resolved after preparation takes part in the lookup."""
        agenda = make_agenda(lookup=[9])
        draft = EventDraft(
            intent="cancel",
            participants=[
                ParticipantMatch(input_name="Jean", status="matched", score=1.0, resolved_id=1, resolved_name="Jean Dupont"),
                ParticipantMatch(input_name="Marie", status="matched", score=1.0, resolved_id=2, resolved_name="Marie Martin"),
            ],
            event_match=EventMatchQuery(original_start=at(11, 14), participant_ids=[1]),
        )

        await make_service(agenda).confirm(draft)

        assert agenda.lookup_calls[0].participant_ids == [1, 2]
        assert draft.event_match.participant_ids == [1]


class TestUpdateAndCancel:
    """Mutations of existing events."""

    @pytest.mark.asyncio
    async def test_update_with_id(self, make_agenda, make_service):
        agenda = make_agenda()
        outcome = await make_service(agenda).update({"location": "Cabinet"}, event_id="7")

        assert outcome.success is True
        assert agenda.updated == [(7, {"location": "Cabinet"})]
        assert agenda.lookup_calls == []

    @pytest.mark.asyncio
    async def test_cancel_by_query(self, make_agenda, make_service):
        agenda = make_agenda(lookup=[9])
        query = EventMatchQuery(original_start=at(11, 14), participant_ids=[1])

        outcome = await make_service(agenda).cancel(query=query)

        assert outcome.success is True
        assert agenda.deleted == [9]

    @pytest.mark.asyncio
    async def test_update_without_match_leaves_draft_unchanged(self, make_agenda, make_service):
        """No id and no lookup match: EventNotFound and the draft is untouched."""
        agenda = make_agenda(lookup=[])
        draft = EventDraft(
            intent="update",
            start=at(13, 15),
            stop=at(13, 16),
            event_match=EventMatchQuery(original_start=at(11, 14), participant_ids=[1]),
        )
        before = copy.deepcopy(draft)

        with pytest.raises(EventNotFound):
            await make_service(agenda).commit_change(draft)

        assert draft == before
        assert agenda.updated == []

    @pytest.mark.asyncio
    async def test_commit_change_cancel(self, make_agenda, make_service):
        agenda = make_agenda()
        draft = EventDraft(intent="cancel", event_id=9)

        outcome = await make_service(agenda).commit_change(draft)

        assert outcome.operation == "cancel"
        assert agenda.deleted == [9]

    @pytest.mark.asyncio
    async def test_commit_change_rejects_create(self, make_agenda, make_service):
        with pytest.raises(ValueError):
            await make_service(make_agenda()).commit_change(EventDraft(intent="create"))

    @pytest.mark.asyncio
    async def test_find_event_several(self, make_agenda, make_service):
        agenda = make_agenda(lookup=[9, 10])
        query = EventMatchQuery(original_start=at(11, 14), participant_ids=[1])

        with pytest.raises(EventNotFound) as exc_info:
            await make_service(agenda).find_event(query)
        assert exc_info.value.candidates == [9, 10]


class TestContacts:
    """Directory passthroughs."""

    @pytest.mark.asyncio
    async def test_list_participants(self, make_agenda, make_service, contacts):
        assert await make_service(make_agenda()).list_participants() == contacts

    @pytest.mark.asyncio
    async def test_list_participants_failure_propagates(self, make_agenda, make_service):
        service = make_service(make_agenda(directory_error=DirectoryUnavailable("down")))
        with pytest.raises(DirectoryUnavailable):
            await service.list_participants()

    @pytest.mark.asyncio
    async def test_created_contact_can_be_attached(self, make_agenda, make_service, reference_now):
        agenda = make_agenda(extraction={**VISIT, "participants": ["Sophie Bernard"]})
        service = make_service(agenda)
        draft = await service.prepare("RDV demain 14h", reference_now=reference_now)

        contact = await service.create_contact("Sophie Bernard", phone="0600000000")
        draft.attach_contact("Sophie Bernard", contact)

        assert contact.id == 500
        assert draft.participant_ids == [500]
        assert draft.unmatched == []


class TestDraftFields:
    """Fields sent for an update draft."""

    def test_only_set_fields(self):
        draft = EventDraft(intent="update", start=at(13, 15), stop=at(13, 16))
        assert draft_fields(draft) == {"start": at(13, 15), "stop": at(13, 16)}

    def test_location_and_description(self):
        draft = EventDraft(intent="update", location="Cabinet", description="Bilan")
        assert draft_fields(draft) == {"location": "Cabinet", "description": "Bilan"}
