from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from addressdesk.dependencies.auth import Role, User, role_required
from addressdesk.tickets.service import TicketService

require_staff = role_required(Role.FRONT_DESK, Role.GIS)
require_front_desk = role_required(Role.FRONT_DESK)
require_viewer = role_required(Role.VIEWER)
require_admin = role_required(Role.ADMIN)

StaffUser = Annotated[User, Depends(require_staff)]
FrontDeskUser = Annotated[User, Depends(require_front_desk)]
ViewerUser = Annotated[User, Depends(require_viewer)]
AdminUser = Annotated[User, Depends(require_admin)]


async def get_ticket_service(request: Request) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return service
