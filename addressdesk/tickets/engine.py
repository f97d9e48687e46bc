"""Workflow state machine execution.

Every operation follows the same unit of work: load the ticket, validate the
request against its current state, compute the complete set of field
changes plus exactly one history entry in memory, and hand both to the
repository as a single versioned write.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any

from opentelemetry import trace

from addressdesk.core.config import RejectionAssignment

from .assignment import AssignmentSelector
from .errors import InvalidTransitionError, NotFoundError, ValidationError
from .history import SYSTEM_ACTOR, last_assignee_in_stage, make_entry
from .models import Ticket, TicketFilter, TicketMutation
from .repository import StaffDirectory, TicketRepository
from .state import EdgeKind, TicketStateMachine, TicketStatus, TransitionRule, WorkflowStage

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

CLOSED_TARGET = TicketStatus.CLOSED.value

_ASSIGNMENT_PURPOSE = {
    WorkflowStage.ADDRESSING: "addressing",
    WorkflowStage.VERIFICATION: "verification",
    WorkflowStage.READY_TO_CONTACT: "customer contact",
}


def _clean(value: str | None) -> str:
    return (value or "").strip()


def parse_stage(value: WorkflowStage | str) -> WorkflowStage:
    try:
        return WorkflowStage(value)
    except ValueError as exc:
        allowed = ", ".join(stage.value for stage in WorkflowStage)
        raise ValidationError(f"Unknown workflow stage {value!r}; expected one of: {allowed}") from exc


class WorkflowEngine:
    """Apply workflow transitions and workflow-adjacent actions to tickets."""

    def __init__(
        self,
        repository: TicketRepository,
        staff_directory: StaffDirectory,
        *,
        state_machine: TicketStateMachine | None = None,
        selector: AssignmentSelector | None = None,
        rejection_assignment: RejectionAssignment = RejectionAssignment.PREVIOUS_ADDRESSER,
        system_actor_id: str = SYSTEM_ACTOR,
    ) -> None:
        self._repository = repository
        self._staff = staff_directory
        self._state_machine = state_machine or TicketStateMachine()
        self._selector = selector or AssignmentSelector()
        self._rejection_assignment = rejection_assignment
        self._system_actor_id = system_actor_id

    @property
    def state_machine(self) -> TicketStateMachine:
        return self._state_machine

    async def load(self, ticket_id: str) -> Ticket:
        ticket = await self._repository.load(ticket_id)
        if ticket is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def transition(
        self,
        ticket_id: str,
        target: WorkflowStage | str,
        *,
        actor_id: str | None,
        now: datetime,
        note: str | None = None,
        approved_address: str | None = None,
        verification_note: str | None = None,
    ) -> Ticket:
        if target == CLOSED_TARGET:
            return await self.close(ticket_id, actor_id=actor_id, note=note, now=now)

        stage = parse_stage(target)
        with tracer.start_as_current_span("ticket.transition") as span:
            span.set_attribute("ticket.id", ticket_id)
            span.set_attribute("ticket.target_stage", stage.value)
            ticket = await self.load(ticket_id)
            mutation = await self.plan_transition(
                ticket,
                stage,
                actor_id=actor_id,
                now=now,
                note=note,
                approved_address=approved_address,
                verification_note=verification_note,
            )
            updated = await self._commit(ticket, mutation)
            logger.info(
                "Ticket %s moved %s -> %s (assigned_to=%s)",
                ticket.ticket_number,
                ticket.workflow_stage.value,
                stage.value,
                updated.assigned_to,
            )
            return updated

    async def plan_transition(
        self,
        ticket: Ticket,
        target: WorkflowStage,
        *,
        actor_id: str | None,
        now: datetime,
        note: str | None = None,
        approved_address: str | None = None,
        verification_note: str | None = None,
    ) -> TicketMutation:
        """Compute the mutation for moving ``ticket`` to ``target`` without writing it."""

        rule = self._state_machine.rule_for(ticket.workflow_stage, target)
        if rule is None:
            allowed = ", ".join(stage.value for stage in self._state_machine.targets(ticket.workflow_stage))
            raise InvalidTransitionError(
                f"Cannot move ticket from {ticket.workflow_stage.value} to {target.value}"
                + (f" (allowed: {allowed})" if allowed else "")
            )

        note = _clean(note)
        feedback = _clean(verification_note) or note
        if rule.requires_note:
            if rule.kind == EdgeKind.REJECTION and not feedback:
                raise ValidationError("A verification note explaining the rejection is required")
            if rule.kind == EdgeKind.REOPEN and not note:
                raise ValidationError("A note explaining why the ticket is reopened is required")

        changes: dict[str, Any] = {"workflow_stage": target}
        if rule.status is not None:
            changes["status"] = rule.status
        changes.update(self._stage_flags(ticket, rule, approved_address, feedback))

        assigned_to = ticket.assigned_to
        assignment_note = ""
        if rule.assignment is not None:
            result = await self._selector.assign(
                self._staff, rule.assignment, current_assignee=ticket.assigned_to
            )
            assigned_to = None if result.staff is None else result.staff.id
            assignment_note = result.describe(_ASSIGNMENT_PURPOSE.get(target, ""))
        elif rule.kind == EdgeKind.REJECTION:
            assigned_to, assignment_note = await self._rejection_assignee(ticket)
        changes["assigned_to"] = assigned_to

        if rule.kind == EdgeKind.REJECTION:
            summary = note or "Returned to Addressing"
            if feedback not in summary:
                summary = f"{summary}: {feedback}"
        else:
            summary = note or f"Transitioned to {target.value}"
        if assignment_note:
            summary = f"{summary} ({assignment_note})"

        entry = make_entry(
            ticket,
            workflow_stage=target,
            status=changes.get("status", ticket.status),
            assigned_to=assigned_to,
            notes=summary,
            action_by=actor_id or self._system_actor_id,
            now=now,
        )
        return TicketMutation(changes=changes, updated_at=entry.timestamp, entry=entry)

    def _stage_flags(
        self,
        ticket: Ticket,
        rule: TransitionRule,
        approved_address: str | None,
        feedback: str,
    ) -> dict[str, Any]:
        target = rule.target
        if target == WorkflowStage.VERIFICATION:
            flags: dict[str, Any] = {"address_created": True, "address_verified": False}
            if rule.requires_approved_address:
                address = _clean(approved_address) or _clean(ticket.approved_address)
                if not address:
                    raise ValidationError("An approved address is required before verification")
                flags["approved_address"] = address
            return flags
        if target == WorkflowStage.ADDRESSING:
            flags = {"address_created": False, "address_verified": False}
            if rule.kind == EdgeKind.REJECTION:
                flags["verification_note"] = feedback
            return flags
        if target == WorkflowStage.READY_TO_CONTACT:
            return {"address_verified": True, "verification_note": None}
        if target == WorkflowStage.COMPLETED:
            return {"address_verified": True}
        return {}

    async def _rejection_assignee(self, ticket: Ticket) -> tuple[str | None, str]:
        if self._rejection_assignment == RejectionAssignment.KEEP_CURRENT:
            return ticket.assigned_to, "kept with the current assignee"

        addresser = last_assignee_in_stage(ticket.history, WorkflowStage.ADDRESSING)
        if addresser is None:
            return ticket.assigned_to, "previous addresser unknown, kept with the current assignee"
        staff = await self._staff.get(addresser)
        name = staff.name if staff is not None else addresser
        return addresser, f"returned to previous addresser {name}"

    async def close(self, ticket_id: str, *, actor_id: str | None, now: datetime, note: str | None = None) -> Ticket:
        ticket = await self.load(ticket_id)
        if not self._state_machine.can_close(ticket.workflow_stage, ticket.status):
            raise InvalidTransitionError(
                f"Only completed tickets can be closed (stage {ticket.workflow_stage.value}, status {ticket.status.value})"
            )
        entry = make_entry(
            ticket,
            workflow_stage=ticket.workflow_stage,
            status=TicketStatus.CLOSED,
            assigned_to=ticket.assigned_to,
            notes=_clean(note) or "Ticket closed",
            action_by=actor_id or self._system_actor_id,
            now=now,
        )
        mutation = TicketMutation(changes={"status": TicketStatus.CLOSED}, updated_at=entry.timestamp, entry=entry)
        updated = await self._commit(ticket, mutation)
        logger.info("Ticket %s closed", ticket.ticket_number)
        return updated

    async def reassign(
        self,
        ticket_id: str,
        staff_id: str,
        *,
        actor_id: str | None,
        now: datetime,
        note: str | None = None,
    ) -> Ticket:
        ticket = await self.load(ticket_id)
        if ticket.status == TicketStatus.CLOSED:
            raise InvalidTransitionError("Closed tickets cannot be reassigned")
        staff = await self._staff.get(staff_id)
        if staff is None:
            raise NotFoundError(f"Staff member {staff_id} not found")

        entry = make_entry(
            ticket,
            workflow_stage=ticket.workflow_stage,
            status=ticket.status,
            assigned_to=staff.id,
            notes=_clean(note) or f"Manually reassigned to {staff.name}",
            action_by=actor_id or self._system_actor_id,
            now=now,
        )
        mutation = TicketMutation(changes={"assigned_to": staff.id}, updated_at=entry.timestamp, entry=entry)
        return await self._commit(ticket, mutation)

    async def request_signature(self, ticket_id: str, *, actor_id: str | None, now: datetime) -> Ticket:
        """Issue a fresh single-use signature token for customer confirmation."""

        ticket = await self.load(ticket_id)
        if ticket.workflow_stage != WorkflowStage.READY_TO_CONTACT:
            raise InvalidTransitionError(
                f"Signature requests need stage {WorkflowStage.READY_TO_CONTACT.value}, "
                f"ticket is in {ticket.workflow_stage.value}"
            )
        if not ticket.intake.email:
            raise ValidationError("Ticket has no email address to send the signature request to")
        if ticket.signature_completed:
            raise ValidationError("The customer has already signed for this ticket")

        actor = actor_id or self._system_actor_id
        resend = ticket.signature_requested
        entry = make_entry(
            ticket,
            workflow_stage=ticket.workflow_stage,
            status=ticket.status,
            assigned_to=ticket.assigned_to,
            notes="Signature request re-sent to customer" if resend else "Signature request sent to customer",
            action_by=actor,
            now=now,
        )
        mutation = TicketMutation(
            changes={
                "signature_token": secrets.token_urlsafe(24),
                "signature_requested": True,
                "signature_requested_at": entry.timestamp,
                "signature_requested_by": actor,
            },
            updated_at=entry.timestamp,
            entry=entry,
        )
        return await self._commit(ticket, mutation)

    async def complete_signature(
        self,
        token: str,
        *,
        now: datetime,
        address_letter_path: str | None = None,
    ) -> Ticket:
        ticket = await self.find_by_signature_token(token)
        if ticket.signature_completed:
            raise ValidationError("This signature has already been completed")
        if ticket.workflow_stage != WorkflowStage.READY_TO_CONTACT:
            raise ValidationError("The signature request is no longer active")

        entry = make_entry(
            ticket,
            workflow_stage=ticket.workflow_stage,
            status=ticket.status,
            assigned_to=ticket.assigned_to,
            notes="Customer has signed and confirmed the address",
            action_by=ticket.signature_requested_by or self._system_actor_id,
            now=now,
        )
        changes: dict[str, Any] = {"signature_completed": True, "signature_completed_at": entry.timestamp}
        if address_letter_path:
            changes["address_letter_path"] = address_letter_path
        mutation = TicketMutation(changes=changes, updated_at=entry.timestamp, entry=entry)
        return await self._commit(ticket, mutation)

    async def find_by_signature_token(self, token: str) -> Ticket:
        if not _clean(token):
            raise NotFoundError("Invalid signature token")
        matches = await self._repository.find(TicketFilter(signature_token=token))
        if not matches:
            raise NotFoundError("Invalid signature token or ticket not found")
        return matches[0]

    async def _commit(self, ticket: Ticket, mutation: TicketMutation) -> Ticket:
        return await self._repository.atomic_update(ticket.id, ticket.version, mutation)
