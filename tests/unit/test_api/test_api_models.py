"""
Unit tests for API request/response models.

Tests Pydantic validation of the agenda request bodies.
"""

import pytest
from pydantic import ValidationError

from visit_agenda.api.models import (
    AvailabilityRequest,
    CandidateModel,
    ConfirmRequest,
    CreateContactRequest,
    ErrorResponse,
    PrepareRequest,
    UpdateRequest,
)


class TestPrepareRequest:
    """Test PrepareRequest model."""

    def test_valid(self):
        request = PrepareRequest(text="  RDV demain 14h avec Jean  ")
        assert request.text == "RDV demain 14h avec Jean"
        assert request.reference_now is None

    def test_empty_text_rejected(self):
        with pytest.raises(ValidationError):
            PrepareRequest(text="")

    def test_whitespace_text_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            PrepareRequest(text="   ")
        assert "Le texte est requis" in str(exc_info.value)

    def test_text_too_long(self):
        with pytest.raises(ValidationError):
            PrepareRequest(text="x" * 2001)


class TestConfirmRequest:
    """Test ConfirmRequest model."""

    def test_defaults(self):
        request = ConfirmRequest(event={})
        assert request.event.intent == "create"
        assert request.selections == {}
        assert request.skip_availability_check is False

    def test_alias_and_field_name(self):
        assert ConfirmRequest(event={}, skipAvailabilityCheck=True).skip_availability_check is True
        assert ConfirmRequest(event={}, skip_availability_check=True).skip_availability_check is True

    def test_unknown_intent_rejected(self):
        with pytest.raises(ValidationError):
            ConfirmRequest(event={"intent": "reschedule"})

    def test_unknown_status_rejected(self):
        with pytest.raises(ValidationError):
            ConfirmRequest(event={}, participants=[{"input_name": "Jean", "status": "maybe"}])


class TestOtherRequests:
    def test_availability_attempt_bounds(self):
        body = {"start": "2025-01-11T14:00:00", "stop": "2025-01-11T15:00:00"}
        assert AvailabilityRequest(**body).max_attempts is None
        with pytest.raises(ValidationError):
            AvailabilityRequest(**body, max_attempts=0)
        with pytest.raises(ValidationError):
            AvailabilityRequest(**body, max_attempts=21)

    def test_update_fields_default_empty(self):
        request = UpdateRequest(event_id=7)
        assert request.fields.model_dump(exclude_none=True) == {}

    def test_contact_name_stripped(self):
        assert CreateContactRequest(name=" Sophie ").name == "Sophie"

    def test_contact_name_blank(self):
        with pytest.raises(ValidationError):
            CreateContactRequest(name="  ")

    def test_candidate_score_bounds(self):
        with pytest.raises(ValidationError):
            CandidateModel(id=1, name="Jean", score=1.5)


class TestErrorResponse:
    def test_valid(self):
        error = ErrorResponse(error_type="event_not_found", message="not found")
        assert error.retryable is False
        assert error.details is None

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            ErrorResponse(error_type="teapot", message="x")
