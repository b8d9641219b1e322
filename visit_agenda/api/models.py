"""
Pydantic request and response models for the Visit Agenda API.
"""

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

IdValue = Union[int, str]


# =============================================================================
# Shared Models
# =============================================================================


class CandidateModel(BaseModel):
    """Directory entry proposed for a participant mention."""

    id: IdValue
    name: str
    score: float = Field(..., ge=0.0, le=1.0)


class ProposedContactModel(BaseModel):
    """Contact the user may create for an unknown name."""

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class ParticipantModel(BaseModel):
    """Resolution of one participant mention."""

    input_name: str
    status: Literal["matched", "ambiguous", "unmatched"]
    score: float = 0.0
    resolved_id: Optional[IdValue] = None
    resolved_name: Optional[str] = None
    candidates: list[CandidateModel] = Field(default_factory=list)
    proposed_contact: Optional[ProposedContactModel] = None
    needs_contact_creation: bool = False


class EventMatchModel(BaseModel):
    """Lookup key for an existing event."""

    original_start: datetime
    participant_ids: list[IdValue] = Field(default_factory=list)
    keywords: Optional[list[str]] = None


class EventModel(BaseModel):
    """Event fields of a draft."""

    intent: Literal["create", "update", "cancel"] = "create"
    title: str = ""
    start: Optional[datetime] = None
    stop: Optional[datetime] = None
    location: str = ""
    description: str = ""
    event_id: Optional[IdValue] = None
    event_match: Optional[EventMatchModel] = None


class SlotModel(BaseModel):
    start: datetime
    stop: datetime


class ContactModel(BaseModel):
    """Directory contact."""

    id: IdValue
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


# =============================================================================
# Request Models
# =============================================================================


class PrepareRequest(BaseModel):
    """Dictated appointment to turn into a draft."""

    text: str = Field(
        ...,
        description="Dictated appointment description",
        min_length=1,
        max_length=2000,
        examples=["Rendez-vous demain à 14h avec Jean Dupont pour 30 minutes"],
    )
    reference_now: Optional[datetime] = Field(
        None,
        description="Instant relative dates are resolved against (defaults to now)",
    )

    @field_validator("text")
    @classmethod
    def validate_text_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le texte est requis")
        return v.strip()


class ConfirmRequest(BaseModel):
    """Draft sent back by the client for commit."""

    model_config = ConfigDict(populate_by_name=True)

    event: EventModel
    participants: list[ParticipantModel] = Field(default_factory=list)
    selections: dict[str, IdValue] = Field(
        default_factory=dict,
        description="Chosen contact id per ambiguous mention (input name -> id)",
    )
    warnings: list[str] = Field(default_factory=list)
    skip_availability_check: bool = Field(
        default=False,
        alias="skipAvailabilityCheck",
        description="Commit without searching for a free slot",
    )


class AvailabilityRequest(BaseModel):
    """Standalone availability search."""

    participant_ids: list[IdValue] = Field(default_factory=list)
    start: datetime
    stop: datetime
    max_attempts: Optional[int] = Field(None, ge=1, le=20)


class EventTargetRequest(BaseModel):
    """Identifies an existing event by id or by (original start, participants)."""

    event_id: Optional[IdValue] = None
    original_start: Optional[datetime] = None
    participant_ids: list[IdValue] = Field(default_factory=list)
    keywords: Optional[list[str]] = None


class UpdateFieldsModel(BaseModel):
    """Fields to change on an existing event; unset fields are left alone."""

    title: Optional[str] = None
    start: Optional[datetime] = None
    stop: Optional[datetime] = None
    location: Optional[str] = None
    description: Optional[str] = None


class UpdateRequest(EventTargetRequest):
    fields: UpdateFieldsModel = Field(default_factory=UpdateFieldsModel)


class CancelRequest(EventTargetRequest):
    pass


class CreateContactRequest(BaseModel):
    """New directory contact."""

    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip()


# =============================================================================
# Response Models
# =============================================================================


class DraftResponse(BaseModel):
    """A prepared draft with everything the user must review."""

    event: EventModel
    participants: list[ParticipantModel]
    participant_ids: list[IdValue]
    warnings: list[str]
    needs_disambiguation: bool
    duration_minutes: Optional[int] = None


class AttemptModel(BaseModel):
    number: int
    start: datetime
    stop: datetime
    outcome: Literal["free", "busy", "timeout", "error"]
    detail: Optional[str] = None


class AvailabilityResponse(BaseModel):
    """Outcome of the availability search."""

    success: bool
    attempts: int
    start: datetime
    stop: datetime
    requested_start: datetime
    requested_stop: datetime
    message: str
    history: list[AttemptModel] = Field(default_factory=list)


class SummaryModel(BaseModel):
    """Recap of a created event."""

    title: str
    start: datetime
    stop: datetime
    location: str
    participants: str
    participant_ids: list[IdValue]
    event_id: Optional[IdValue] = None


class FailureModel(BaseModel):
    """Upstream rejection of a commit."""

    message: str
    status_code: Optional[int] = None
    body: Optional[str] = None
    retryable: bool = False


class CommitResponse(BaseModel):
    """Outcome of an update or cancel."""

    success: bool
    operation: Literal["create", "update", "cancel"]
    event_id: Optional[IdValue] = None
    failure: Optional[FailureModel] = None


class ConfirmResponse(BaseModel):
    """Outcome of a confirmation."""

    success: bool
    status: Literal[
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
    message: str = ""
    summary: Optional[SummaryModel] = None
    conflict: bool = False
    suggestion: Optional[SlotModel] = None
    availability: Optional[AvailabilityResponse] = None
    failure: Optional[FailureModel] = None
    commit: Optional[CommitResponse] = None
    draft: Optional[DraftResponse] = None


class FindEventResponse(BaseModel):
    found: bool
    event_id: Optional[IdValue] = None


class ParticipantsResponse(BaseModel):
    participants: list[ContactModel]
    count: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Health status")
    version: str = Field(..., description="API version")
    environment: str = Field(..., description="Running environment")


class ErrorResponse(BaseModel):
    """Error information for failed requests."""

    error_type: Literal[
        "validation_error",
        "event_not_found",
        "directory_unavailable",
        "upstream_error",
        "timeout_error",
        "http_error",
        "internal_error",
    ] = Field(..., description="Type of error")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict] = Field(None, description="Additional error details")
    retryable: bool = Field(default=False, description="Whether request can be retried")
