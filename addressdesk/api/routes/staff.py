from __future__ import annotations

from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict, Field

from addressdesk.api.errors import to_http_exception
from addressdesk.api.routes.tickets import TicketServiceDep
from addressdesk.dependencies.tickets import AdminUser
from addressdesk.tickets.errors import WorkflowError
from addressdesk.tickets.state import Department, StaffRole

router = APIRouter(prefix="/staff", tags=["staff"])


class StaffCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=60)
    email: str = Field(..., min_length=3, max_length=255)
    department: Department = Department.FRONT_DESK
    role: StaffRole = StaffRole.USER
    is_available_for_assignment: bool = True


class StaffUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=60)
    department: Department | None = None
    role: StaffRole | None = None
    is_available_for_assignment: bool | None = None


class StaffResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    email: str
    department: Department
    role: StaffRole
    is_available_for_assignment: bool


@router.get("", response_model=list[StaffResponse])
async def list_staff(service: TicketServiceDep, _: AdminUser) -> list[StaffResponse]:
    try:
        members = await service.list_staff()
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return [StaffResponse.model_validate(member) for member in members]


@router.post("", response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
async def create_staff(payload: StaffCreateRequest, service: TicketServiceDep, _: AdminUser) -> StaffResponse:
    try:
        member = await service.create_staff(**payload.model_dump())
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return StaffResponse.model_validate(member)


@router.get("/{staff_id}", response_model=StaffResponse)
async def get_staff(staff_id: str, service: TicketServiceDep, _: AdminUser) -> StaffResponse:
    try:
        member = await service.get_staff(staff_id)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return StaffResponse.model_validate(member)


@router.patch("/{staff_id}", response_model=StaffResponse)
async def update_staff(
    staff_id: str,
    payload: StaffUpdateRequest,
    service: TicketServiceDep,
    _: AdminUser,
) -> StaffResponse:
    try:
        member = await service.update_staff(staff_id, **payload.model_dump(exclude_none=True))
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return StaffResponse.model_validate(member)
