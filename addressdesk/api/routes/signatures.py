"""Customer-facing signature confirmation endpoints.

These routes are reached through the emailed link, so they are
authenticated by the single-use token rather than a staff bearer token.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from addressdesk.api.errors import to_http_exception
from addressdesk.api.routes.tickets import TicketServiceDep
from addressdesk.tickets.errors import WorkflowError
from addressdesk.tickets.models import TicketDetail

router = APIRouter(prefix="/signature", tags=["signature"])


class SignatureCompleteRequest(BaseModel):
    address_letter_path: str | None = Field(default=None, max_length=500)


class SignatureTicketResponse(BaseModel):
    ticket_number: str
    first_name: str
    last_name: str
    approved_address: str | None
    signature_completed: bool
    signature_completed_at: datetime | None


def _to_response(detail: TicketDetail) -> SignatureTicketResponse:
    ticket = detail.ticket
    return SignatureTicketResponse(
        ticket_number=ticket.ticket_number,
        first_name=ticket.intake.first_name,
        last_name=ticket.intake.last_name,
        approved_address=ticket.approved_address,
        signature_completed=ticket.signature_completed,
        signature_completed_at=ticket.signature_completed_at,
    )


@router.get("/{token}", response_model=SignatureTicketResponse)
async def get_signature_ticket(token: str, service: TicketServiceDep) -> SignatureTicketResponse:
    try:
        detail = await service.get_signature_ticket(token)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return _to_response(detail)


@router.post("/{token}/complete", response_model=SignatureTicketResponse)
async def complete_signature(
    token: str,
    payload: SignatureCompleteRequest,
    service: TicketServiceDep,
) -> SignatureTicketResponse:
    try:
        detail = await service.complete_signature(token, address_letter_path=payload.address_letter_path)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc
    return _to_response(detail)
