"""
Agenda API routes.

Prepare a draft from dictated text, confirm it into a calendar event, and
update, cancel or look up existing events.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from visit_agenda.api.dependencies import get_agenda_service
from visit_agenda.api.models import (
    AvailabilityRequest,
    AvailabilityResponse,
    CancelRequest,
    CommitResponse,
    ConfirmRequest,
    ConfirmResponse,
    ContactModel,
    CreateContactRequest,
    DraftResponse,
    EventTargetRequest,
    FindEventResponse,
    ParticipantsResponse,
    PrepareRequest,
    UpdateRequest,
)
from visit_agenda.api.response_builder import (
    build_availability_response,
    build_commit_response,
    build_confirm_response,
    build_draft_response,
    draft_from_request,
    localize,
)
from visit_agenda.models import EventMatchQuery
from visit_agenda.services import AgendaService, coerce_contact_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agenda", tags=["Agenda"])


def _query_from_target(request: EventTargetRequest, service: AgendaService):
    if request.original_start is None:
        return None
    return EventMatchQuery(
        original_start=localize(request.original_start, service.settings.tzinfo),
        participant_ids=[coerce_contact_id(i) for i in request.participant_ids],
        keywords=request.keywords,
    )


@router.post(
    "/prepare",
    response_model=DraftResponse,
    summary="Build a draft from dictated text",
    responses={
        200: {"description": "Draft built (check warnings)"},
        422: {"description": "Validation error"},
    },
)
async def prepare_event(
    request: PrepareRequest,
    service: AgendaService = Depends(get_agenda_service),
) -> DraftResponse:
    """
    Turn dictated text into a reviewable draft.

    Collaborator failures never fail this call; they show up as warnings.
    """
    logger.info(f"Preparing event from text: '{request.text[:50]}...'")
    reference_now = localize(request.reference_now, service.settings.tzinfo)
    draft = await service.prepare(request.text, reference_now=reference_now)
    return build_draft_response(draft)


@router.post(
    "/confirm",
    response_model=ConfirmResponse,
    summary="Confirm a draft (create, update or cancel)",
    responses={
        200: {"description": "Created, updated or cancelled, or conflict/disambiguation to review"},
        404: {"description": "Event to update/cancel not found (draft echoed back)"},
        422: {"description": "Invalid participants or selection"},
        502: {"description": "Calendar rejected the change"},
    },
)
async def confirm_event(
    request: ConfirmRequest,
    service: AgendaService = Depends(get_agenda_service),
):
    """
    Apply a reviewed draft: create the event, or update/cancel the existing one.

    Conflicts are not errors: a busy slot returns 200 with a suggestion.
    """
    try:
        draft = draft_from_request(request, service.settings.tzinfo)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    for input_name, contact_id in request.selections.items():
        try:
            draft.resolve_participant(input_name, coerce_contact_id(contact_id))
        except KeyError:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Unknown participant mention '{input_name}'",
            )
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    outcome = await service.confirm(draft, skip_availability_check=request.skip_availability_check)
    response = build_confirm_response(outcome)

    if outcome.status == "failed":
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=response.model_dump(mode="json"))
    if outcome.status == "not_found":
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=response.model_dump(mode="json"))
    return response


@router.post(
    "/check-availability",
    response_model=AvailabilityResponse,
    summary="Search a free slot for participants",
)
async def check_availability(
    request: AvailabilityRequest,
    service: AgendaService = Depends(get_agenda_service),
) -> AvailabilityResponse:
    tz = service.settings.tzinfo
    start, stop = localize(request.start, tz), localize(request.stop, tz)
    if stop <= start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="stop must be after start",
        )

    result = await service.check_availability(
        [coerce_contact_id(i) for i in request.participant_ids],
        start,
        stop,
        max_attempts=request.max_attempts,
    )
    return build_availability_response(result)


@router.post(
    "/update",
    response_model=CommitResponse,
    summary="Update an existing event",
    responses={
        404: {"description": "Event not found"},
        502: {"description": "Calendar rejected the update"},
    },
)
async def update_event(
    request: UpdateRequest,
    service: AgendaService = Depends(get_agenda_service),
):
    tz = service.settings.tzinfo
    fields = {
        key: localize(value, tz) if key in ("start", "stop") else value
        for key, value in request.fields.model_dump(exclude_none=True).items()
    }
    if not fields:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No field to update",
        )

    outcome = await service.update(
        fields,
        event_id=coerce_contact_id(request.event_id),
        query=_query_from_target(request, service),
    )
    response = build_commit_response(outcome)
    if not response.success:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=response.model_dump(mode="json"))
    return response


@router.post(
    "/cancel",
    response_model=CommitResponse,
    summary="Cancel an existing event",
    responses={
        404: {"description": "Event not found"},
        502: {"description": "Calendar rejected the deletion"},
    },
)
async def cancel_event(
    request: CancelRequest,
    service: AgendaService = Depends(get_agenda_service),
):
    outcome = await service.cancel(
        event_id=coerce_contact_id(request.event_id),
        query=_query_from_target(request, service),
    )
    response = build_commit_response(outcome)
    if not response.success:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=response.model_dump(mode="json"))
    return response


@router.post(
    "/find-event",
    response_model=FindEventResponse,
    summary="Find an event by original start and participants",
    responses={404: {"description": "No single event matches"}},
)
async def find_event(
    request: EventTargetRequest,
    service: AgendaService = Depends(get_agenda_service),
) -> FindEventResponse:
    query = _query_from_target(request, service)
    if query is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="original_start is required",
        )
    event_id = await service.find_event(query)
    return FindEventResponse(found=True, event_id=event_id)


@router.get(
    "/participants",
    response_model=ParticipantsResponse,
    summary="List directory contacts",
)
async def list_participants(
    service: AgendaService = Depends(get_agenda_service),
) -> ParticipantsResponse:
    contacts = await service.list_participants()
    return ParticipantsResponse(
        participants=[
            ContactModel(id=c.id, name=c.name, email=c.email, phone=c.phone)
            for c in contacts
        ],
        count=len(contacts),
    )


@router.post(
    "/contacts",
    response_model=ContactModel,
    status_code=status.HTTP_201_CREATED,
    summary="Create a directory contact",
)
async def create_contact(
    request: CreateContactRequest,
    service: AgendaService = Depends(get_agenda_service),
) -> ContactModel:
    contact = await service.create_contact(request.name, email=request.email, phone=request.phone)
    return ContactModel(id=contact.id, name=contact.name, email=contact.email, phone=contact.phone)
