"""In-process implementations of the ticket collaborators.

Used by ``storage_backend="memory"`` and by the test-suite. Each call runs
to completion without yielding to the event loop, which gives the same
single-document atomicity the SQL repository gets from a transaction.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Iterable, Sequence

from .errors import ConflictError, DuplicateTicketNumberError, NotFoundError
from .models import StaffMember, Ticket, TicketFilter, TicketMutation
from .state import Department, StaffRole


class InMemoryTicketRepository:
    def __init__(self) -> None:
        self._tickets: dict[str, Ticket] = {}

    async def ensure_schema(self) -> None:
        return None

    async def load(self, ticket_id: str) -> Ticket | None:
        ticket = self._tickets.get(ticket_id)
        return None if ticket is None else replace(ticket)

    async def insert(self, ticket: Ticket) -> Ticket:
        if any(existing.ticket_number == ticket.ticket_number for existing in self._tickets.values()):
            raise DuplicateTicketNumberError(f"Ticket number {ticket.ticket_number} is already in use")
        stored = replace(ticket, id=ticket.id or str(uuid.uuid4()), version=1)
        self._tickets[stored.id] = stored
        return replace(stored)

    async def atomic_update(self, ticket_id: str, expected_version: int, mutation: TicketMutation) -> Ticket:
        current = self._tickets.get(ticket_id)
        if current is None:
            raise NotFoundError(f"Ticket {ticket_id} not found")
        if current.version != expected_version:
            raise ConflictError(
                f"Ticket {ticket_id} was modified concurrently (expected version {expected_version})"
            )
        updated = current.apply(mutation)
        self._tickets[ticket_id] = updated
        return replace(updated)

    async def find(self, query: TicketFilter) -> Sequence[Ticket]:
        matches = [replace(ticket) for ticket in self._tickets.values() if query.matches(ticket)]
        matches.sort(key=lambda ticket: ticket.created_at, reverse=True)
        return matches


class InMemoryStaffDirectory:
    def __init__(self, staff: Iterable[StaffMember] = ()) -> None:
        self._staff: dict[str, StaffMember] = {member.id: member for member in staff}

    async def find_available(
        self,
        department: Department,
        role: StaffRole | None = None,
        exclude_ids: Iterable[str] = (),
    ) -> Sequence[StaffMember]:
        excluded = set(exclude_ids)
        return [
            member
            for member in sorted(self._staff.values(), key=lambda member: member.name)
            if member.department == department
            and member.is_available_for_assignment
            and (role is None or member.role == role)
            and member.id not in excluded
        ]

    async def get(self, staff_id: str) -> StaffMember | None:
        return self._staff.get(staff_id)

    async def list_staff(self) -> Sequence[StaffMember]:
        return sorted(self._staff.values(), key=lambda member: member.name)

    async def save(self, staff: StaffMember) -> StaffMember:
        if any(
            member.email == staff.email and member.id != staff.id for member in self._staff.values()
        ):
            raise ConflictError(f"Staff e-mail {staff.email} is already in use")
        self._staff[staff.id] = staff
        return staff
