from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from addressdesk.api.errors import to_http_exception
from addressdesk.dependencies.tickets import AdminUser, FrontDeskUser, StaffUser, ViewerUser, get_ticket_service
from addressdesk.tickets.errors import WorkflowError
from addressdesk.tickets.models import County, HistoryEntry, PremiseType, RequestType, TicketDetail, TicketFilter
from addressdesk.tickets.service import TicketService
from addressdesk.tickets.state import TicketPriority, TicketStatus, WorkflowStage

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    """Intake form; field rules are enforced by the ticket service."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    mobile_phone: str | None = None
    landline_phone: str | None = None
    request_type: str | None = None
    existing_address: str | None = None
    additional_info: str | None = None
    premise_type: str | None = None
    property_id: str | None = None
    county: str | None = None
    street_name: str | None = None
    closest_intersection: str | None = None
    subdivision: str | None = None
    lot_number: str | None = None
    x_coordinate: float | None = None
    y_coordinate: float | None = None
    priority: TicketPriority | None = None


class TicketTransitionRequest(BaseModel):
    target_stage: str = Field(..., min_length=1)
    note: str = Field(default="", max_length=1000)
    approved_address: str | None = Field(default=None, max_length=500)
    verification_note: str | None = Field(default=None, max_length=1000)


class TicketReopenRequest(BaseModel):
    target_stage: WorkflowStage
    note: str = Field(..., min_length=1, max_length=1000)


class TicketCloseRequest(BaseModel):
    note: str = Field(default="", max_length=1000)


class TicketReassignRequest(BaseModel):
    staff_id: str = Field(..., min_length=1)
    note: str = Field(default="", max_length=1000)


class IntakeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    first_name: str
    last_name: str
    email: str
    mobile_phone: str | None
    landline_phone: str | None
    request_type: RequestType
    existing_address: str | None
    additional_info: str | None
    premise_type: PremiseType
    property_id: str | None
    county: County
    street_name: str
    closest_intersection: str | None
    subdivision: str | None
    lot_number: str | None
    x_coordinate: float
    y_coordinate: float


class AssigneeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str


class TicketResponse(BaseModel):
    id: str
    ticket_number: str
    status: TicketStatus
    workflow_stage: WorkflowStage
    priority: TicketPriority
    assigned_to: str | None
    assignee: AssigneeResponse | None
    address_created: bool
    address_verified: bool
    approved_address: str | None
    verification_note: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime
    due_date: datetime | None
    time_to_resolve: int | None
    signature_requested: bool
    signature_completed: bool
    address_letter_path: str | None
    version: int
    intake: IntakeResponse


class HistoryEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    workflow_stage: WorkflowStage
    status: TicketStatus
    assigned_to: str | None
    notes: str
    action_by: str
    timestamp: datetime


class PriorityUpdateResponse(BaseModel):
    updated: int


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]


def to_response(detail: TicketDetail) -> TicketResponse:
    ticket = detail.ticket
    return TicketResponse(
        id=ticket.id,
        ticket_number=ticket.ticket_number,
        status=ticket.status,
        workflow_stage=ticket.workflow_stage,
        priority=ticket.priority,
        assigned_to=ticket.assigned_to,
        assignee=None if detail.assignee is None else AssigneeResponse.model_validate(detail.assignee),
        address_created=ticket.address_created,
        address_verified=ticket.address_verified,
        approved_address=ticket.approved_address,
        verification_note=ticket.verification_note,
        created_by=ticket.created_by,
        created_at=ticket.created_at,
        updated_at=ticket.updated_at,
        due_date=ticket.due_date,
        time_to_resolve=ticket.time_to_resolve,
        signature_requested=ticket.signature_requested,
        signature_completed=ticket.signature_completed,
        address_letter_path=ticket.address_letter_path,
        version=ticket.version,
        intake=IntakeResponse.model_validate(ticket.intake),
    )


def _to_history_response(entry: HistoryEntry) -> HistoryEntryResponse:
    return HistoryEntryResponse.model_validate(entry)


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreateRequest,
    service: TicketServiceDep,
    user: FrontDeskUser,
) -> TicketResponse:
    intake = payload.model_dump(exclude={"priority"}, exclude_none=True)
    try:
        detail = await service.create_ticket(intake, actor_id=user.user_id, priority=payload.priority)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_response(detail)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    service: TicketServiceDep,
    _: ViewerUser,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    priority: TicketPriority | None = Query(default=None),
    workflow_stage: WorkflowStage | None = Query(default=None),
    assigned_to: str | None = Query(default=None),
) -> list[TicketResponse]:
    query = TicketFilter(
        status=status_filter,
        priority=priority,
        workflow_stage=workflow_stage,
        assigned_to=assigned_to,
    )
    try:
        details = await service.list_tickets(query)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return [to_response(detail) for detail in details]


@router.post("/update-priorities", response_model=PriorityUpdateResponse)
async def update_priorities(service: TicketServiceDep, _: AdminUser) -> PriorityUpdateResponse:
    try:
        updated = await service.run_priority_update()
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return PriorityUpdateResponse(updated=updated)


@router.get("/related", response_model=list[TicketResponse])
async def list_related_tickets(
    service: TicketServiceDep,
    _: ViewerUser,
    property_id: str = Query(..., min_length=1),
    ticket_id: str | None = Query(default=None),
) -> list[TicketResponse]:
    try:
        details = await service.list_related_tickets(property_id, exclude_ticket_id=ticket_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return [to_response(detail) for detail in details]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, service: TicketServiceDep, _: ViewerUser) -> TicketResponse:
    try:
        detail = await service.get_ticket(ticket_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_response(detail)


@router.get("/{ticket_id}/history", response_model=list[HistoryEntryResponse])
async def get_ticket_history(
    ticket_id: str, service: TicketServiceDep, _: ViewerUser
) -> list[HistoryEntryResponse]:
    try:
        entries = await service.get_history(ticket_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return [_to_history_response(entry) for entry in entries]


@router.post("/{ticket_id}/transition", response_model=TicketResponse)
async def transition_ticket(
    ticket_id: str,
    payload: TicketTransitionRequest,
    service: TicketServiceDep,
    user: StaffUser,
) -> TicketResponse:
    try:
        detail = await service.transition(
            ticket_id,
            payload.target_stage,
            actor_id=user.user_id,
            note=payload.note,
            approved_address=payload.approved_address,
            verification_note=payload.verification_note,
        )
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_response(detail)


@router.post("/{ticket_id}/reopen", response_model=TicketResponse)
async def reopen_ticket(
    ticket_id: str,
    payload: TicketReopenRequest,
    service: TicketServiceDep,
    user: StaffUser,
) -> TicketResponse:
    try:
        detail = await service.reopen_ticket(
            ticket_id, payload.target_stage, actor_id=user.user_id, note=payload.note
        )
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_response(detail)


@router.post("/{ticket_id}/close", response_model=TicketResponse)
async def close_ticket(
    ticket_id: str,
    payload: TicketCloseRequest,
    service: TicketServiceDep,
    user: StaffUser,
) -> TicketResponse:
    try:
        detail = await service.close_ticket(ticket_id, actor_id=user.user_id, note=payload.note)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_response(detail)


@router.post("/{ticket_id}/reassign", response_model=TicketResponse)
async def reassign_ticket(
    ticket_id: str,
    payload: TicketReassignRequest,
    service: TicketServiceDep,
    user: StaffUser,
) -> TicketResponse:
    try:
        detail = await service.reassign(
            ticket_id, payload.staff_id, actor_id=user.user_id, note=payload.note
        )
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_response(detail)


@router.post("/{ticket_id}/signature-request", response_model=TicketResponse)
async def request_signature(ticket_id: str, service: TicketServiceDep, user: StaffUser) -> TicketResponse:
    try:
        detail = await service.request_signature(ticket_id, actor_id=user.user_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return to_response(detail)
