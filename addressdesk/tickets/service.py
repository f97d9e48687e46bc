from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from addressdesk.core.config import Settings, get_settings

from .assignment import AssignmentSelector
from .dates import add_business_days
from .engine import WorkflowEngine, parse_stage
from .errors import (
    ConflictError,
    DuplicateTicketNumberError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from .intake import validate_intake
from .models import HistoryEntry, StaffMember, StaffRef, Ticket, TicketDetail, TicketFilter, TicketIntake
from .numbering import ticket_number
from .priority import PriorityUpdater
from .repository import StaffDirectory, TicketRepository
from .staff import new_staff_member, updated_staff_member
from .state import Department, EdgeKind, StaffRole, TicketPriority, TicketStateMachine, WorkflowStage

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Timezone aware wall-clock time of the server."""

    return datetime.now(timezone.utc).astimezone()


def _parse_priority(value: TicketPriority | str | None) -> TicketPriority:
    if value is None:
        return TicketPriority.MEDIUM
    try:
        return TicketPriority(value)
    except ValueError as exc:
        allowed = ", ".join(priority.value for priority in TicketPriority)
        raise ValidationError(f"Unknown priority {value!r}; expected one of: {allowed}") from exc


@dataclass(slots=True)
class TicketService:
    """High level orchestration for ticket lifecycle operations."""

    repository: TicketRepository
    staff_directory: StaffDirectory
    settings: Settings = field(default_factory=get_settings)
    selector: AssignmentSelector | None = None
    clock: Callable[[], datetime] = local_now
    engine: WorkflowEngine = field(init=False)
    priority_updater: PriorityUpdater = field(init=False)

    def __post_init__(self) -> None:
        self.engine = WorkflowEngine(
            self.repository,
            self.staff_directory,
            selector=self.selector,
            rejection_assignment=self.settings.rejection_assignment,
            system_actor_id=self.settings.system_actor_id,
        )
        self.priority_updater = PriorityUpdater(self.repository)

    async def ensure_schema(self) -> None:
        await self.repository.ensure_schema()

    async def create_ticket(
        self,
        intake: Mapping[str, Any] | TicketIntake,
        *,
        actor_id: str | None,
        priority: TicketPriority | str | None = None,
        now: datetime | None = None,
    ) -> TicketDetail:
        """Validate ``intake`` and store a new ticket already routed to Addressing."""

        data = validate_intake(intake)
        now = self._now(now)
        actor = actor_id or self.settings.system_actor_id
        business_days = self.settings.due_date_business_days
        draft = Ticket(
            id="",
            ticket_number=ticket_number(now),
            intake=data,
            status=TicketStateMachine.initial_status(),
            workflow_stage=TicketStateMachine.initial_stage(),
            priority=_parse_priority(priority),
            created_by=actor,
            created_at=now,
            updated_at=now,
            due_date=add_business_days(now, business_days),
            time_to_resolve=business_days,
        )
        mutation = await self.engine.plan_transition(
            draft,
            WorkflowStage.ADDRESSING,
            actor_id=actor,
            now=now,
            note="Ticket created",
        )
        prepared = draft.apply(mutation)

        attempts = self.settings.ticket_number_max_attempts
        for attempt in range(attempts):
            candidate = replace(prepared, ticket_number=ticket_number(now, attempt))
            try:
                stored = await self.repository.insert(candidate)
            except DuplicateTicketNumberError:
                logger.warning("Ticket number %s already taken, retrying", candidate.ticket_number)
                continue
            logger.info("Created ticket %s assigned to %s", stored.ticket_number, stored.assigned_to)
            return await self._detail(stored)
        raise ConflictError(f"Could not allocate a unique ticket number after {attempts} attempts")

    async def get_ticket(self, ticket_id: str) -> TicketDetail:
        return await self._detail(await self.engine.load(ticket_id))

    async def list_tickets(self, query: TicketFilter | None = None) -> list[TicketDetail]:
        tickets = await self.repository.find(query or TicketFilter())
        return [await self._detail(ticket) for ticket in tickets]

    async def list_related_tickets(
        self, property_id: str, *, exclude_ticket_id: str | None = None
    ) -> list[TicketDetail]:
        """Other tickets filed for the same property, newest first."""

        property_id = (property_id or "").strip()
        if not property_id:
            raise ValidationError("property_id is required")
        return await self.list_tickets(TicketFilter(property_id=property_id, exclude_id=exclude_ticket_id))

    async def get_history(self, ticket_id: str) -> list[HistoryEntry]:
        ticket = await self.engine.load(ticket_id)
        return list(ticket.history)

    async def transition(
        self,
        ticket_id: str,
        target_stage: WorkflowStage | str,
        *,
        actor_id: str | None,
        note: str = "",
        approved_address: str | None = None,
        verification_note: str | None = None,
        now: datetime | None = None,
    ) -> TicketDetail:
        ticket = await self.engine.transition(
            ticket_id,
            target_stage,
            actor_id=actor_id,
            now=self._now(now),
            note=note,
            approved_address=approved_address,
            verification_note=verification_note,
        )
        return await self._detail(ticket)

    async def close_ticket(
        self,
        ticket_id: str,
        *,
        actor_id: str | None,
        note: str = "",
        now: datetime | None = None,
    ) -> TicketDetail:
        ticket = await self.engine.close(ticket_id, actor_id=actor_id, note=note, now=self._now(now))
        return await self._detail(ticket)

    async def reopen_ticket(
        self,
        ticket_id: str,
        target_stage: WorkflowStage | str,
        *,
        actor_id: str | None,
        note: str,
        now: datetime | None = None,
    ) -> TicketDetail:
        """Send a completed ticket back to Addressing or Verification."""

        stage = parse_stage(target_stage)
        ticket = await self.engine.load(ticket_id)
        rule = self.engine.state_machine.rule_for(ticket.workflow_stage, stage)
        if rule is None or rule.kind != EdgeKind.REOPEN:
            raise InvalidTransitionError(
                f"Ticket in {ticket.workflow_stage.value} cannot be reopened to {stage.value}"
            )
        return await self.transition(ticket_id, stage, actor_id=actor_id, note=note, now=now)

    async def reassign(
        self,
        ticket_id: str,
        staff_id: str,
        *,
        actor_id: str | None,
        note: str = "",
        now: datetime | None = None,
    ) -> TicketDetail:
        ticket = await self.engine.reassign(
            ticket_id, staff_id, actor_id=actor_id, note=note, now=self._now(now)
        )
        return await self._detail(ticket)

    async def request_signature(
        self,
        ticket_id: str,
        *,
        actor_id: str | None,
        now: datetime | None = None,
    ) -> TicketDetail:
        ticket = await self.engine.request_signature(ticket_id, actor_id=actor_id, now=self._now(now))
        return await self._detail(ticket)

    async def get_signature_ticket(self, token: str) -> TicketDetail:
        return await self._detail(await self.engine.find_by_signature_token(token))

    async def complete_signature(
        self,
        token: str,
        *,
        address_letter_path: str | None = None,
        now: datetime | None = None,
    ) -> TicketDetail:
        ticket = await self.engine.complete_signature(
            token, now=self._now(now), address_letter_path=address_letter_path
        )
        return await self._detail(ticket)

    async def run_priority_update(self, now: datetime | None = None) -> int:
        return await self.priority_updater.run(self._now(now))

    async def list_staff(self) -> list[StaffMember]:
        return list(await self.staff_directory.list_staff())

    async def get_staff(self, staff_id: str) -> StaffMember:
        staff = await self.staff_directory.get(staff_id)
        if staff is None:
            raise NotFoundError(f"Staff member {staff_id} not found")
        return staff

    async def create_staff(
        self,
        *,
        name: str,
        email: str,
        department: Department | str = Department.FRONT_DESK,
        role: StaffRole | str = StaffRole.USER,
        is_available_for_assignment: bool = True,
    ) -> StaffMember:
        staff = new_staff_member(
            name=name,
            email=email,
            department=department,
            role=role,
            is_available_for_assignment=is_available_for_assignment,
        )
        if any(member.email == staff.email for member in await self.staff_directory.list_staff()):
            raise ConflictError(f"Staff e-mail {staff.email} is already in use")
        saved = await self.staff_directory.save(staff)
        logger.info("Added staff member %s (%s, %s)", saved.id, saved.department.value, saved.role.value)
        return saved

    async def update_staff(
        self,
        staff_id: str,
        *,
        name: str | None = None,
        department: Department | str | None = None,
        role: StaffRole | str | None = None,
        is_available_for_assignment: bool | None = None,
    ) -> StaffMember:
        """Change a staff record; toggling availability takes effect on the next assignment."""

        current = await self.get_staff(staff_id)
        staff = updated_staff_member(
            current,
            name=name,
            department=department,
            role=role,
            is_available_for_assignment=is_available_for_assignment,
        )
        saved = await self.staff_directory.save(staff)
        if saved.is_available_for_assignment != current.is_available_for_assignment:
            logger.info(
                "Staff member %s is %s for assignment",
                saved.id,
                "available" if saved.is_available_for_assignment else "unavailable",
            )
        return saved

    def _now(self, now: datetime | None) -> datetime:
        """Resolve the operation time; a naive value is taken as server-local."""

        now = now or self.clock()
        return now if now.tzinfo is not None else now.astimezone()

    async def _detail(self, ticket: Ticket) -> TicketDetail:
        if ticket.assigned_to is None:
            return TicketDetail(ticket=ticket)
        staff = await self.staff_directory.get(ticket.assigned_to)
        assignee = StaffRef.from_staff(staff) if staff is not None else None
        return TicketDetail(ticket=ticket, assignee=assignee)
