from __future__ import annotations

import logging
from datetime import datetime, timedelta

import pytest

from addressdesk.tickets.errors import StorageError
from addressdesk.tickets.memory import InMemoryTicketRepository
from addressdesk.tickets.priority import PriorityUpdater
from addressdesk.tickets.service import TicketService
from addressdesk.tickets.state import TicketPriority, WorkflowStage

from conftest import MONDAY_MORNING, make_intake


class FlakyRepository(InMemoryTicketRepository):
    def __init__(self) -> None:
        super().__init__()
        self.failing_ids: set[str] = set()
        self.error: Exception = StorageError("Failed to update ticket")

    async def atomic_update(self, ticket_id, expected_version, mutation):
        if ticket_id in self.failing_ids:
            raise self.error
        return await super().atomic_update(ticket_id, expected_version, mutation)


async def _create(service: TicketService, **kwargs):
    detail = await service.create_ticket(make_intake(), actor_id="front-desk-1", **kwargs)
    return detail.ticket


@pytest.mark.asyncio
async def test_priority_run_is_idempotent_at_due_instant(service):
    ticket = await _create(service)

    first = await service.run_priority_update(now=ticket.due_date)
    refreshed = (await service.get_ticket(ticket.id)).ticket
    second = await service.run_priority_update(now=ticket.due_date)
    unchanged = (await service.get_ticket(ticket.id)).ticket

    assert first == 1
    assert refreshed.priority == TicketPriority.CRITICAL
    assert refreshed.time_to_resolve == 0
    assert second == 0
    assert unchanged.version == refreshed.version


@pytest.mark.asyncio
async def test_priority_writes_do_not_touch_history(service):
    ticket = await _create(service)

    await service.run_priority_update(now=MONDAY_MORNING + timedelta(days=3))

    refreshed = (await service.get_ticket(ticket.id)).ticket
    assert refreshed.history == ticket.history
    assert refreshed.updated_at == MONDAY_MORNING + timedelta(days=3)


@pytest.mark.asyncio
async def test_priority_downgrade_counts_as_change(service):
    ticket = await _create(service, priority="Critical")

    changed = await service.run_priority_update(now=MONDAY_MORNING)

    refreshed = (await service.get_ticket(ticket.id)).ticket
    assert changed == 1
    assert refreshed.priority == TicketPriority.LOW
    assert refreshed.time_to_resolve == 6


@pytest.mark.asyncio
async def test_priority_run_skips_resolved_and_closed_tickets(service):
    ticket = await _create(service)
    await service.transition(ticket.id, "Verification", actor_id="alice", approved_address="1 Main St")
    await service.transition(ticket.id, "Ready to Contact Customer", actor_id="vera")
    completed = (await service.transition(ticket.id, "Completed", actor_id="fiona")).ticket

    changed = await service.run_priority_update(now=MONDAY_MORNING + timedelta(days=30))

    after = (await service.get_ticket(ticket.id)).ticket
    assert changed == 0
    assert after.workflow_stage == WorkflowStage.COMPLETED
    assert after.priority == completed.priority
    assert after.version == completed.version


@pytest.mark.asyncio
async def test_priority_run_continues_after_a_failed_ticket(staff_directory, settings, caplog):
    repository = FlakyRepository()
    service = TicketService(repository, staff_directory, settings=settings, clock=lambda: MONDAY_MORNING)
    broken = await _create(service)
    healthy = await _create(service)
    repository.failing_ids.add(broken.id)

    with caplog.at_level(logging.ERROR, logger="addressdesk.tickets.priority"):
        changed = await PriorityUpdater(repository).run(healthy.due_date)

    assert changed == 1
    assert (await repository.load(healthy.id)).priority == TicketPriority.CRITICAL
    assert (await repository.load(broken.id)).priority == TicketPriority.MEDIUM
    assert "Priority update failed" in caplog.text


@pytest.mark.asyncio
async def test_priority_run_survives_driver_errors(staff_directory, settings, caplog):
    repository = FlakyRepository()
    repository.error = ConnectionResetError("connection reset by peer")
    service = TicketService(repository, staff_directory, settings=settings, clock=lambda: MONDAY_MORNING)
    broken = await _create(service)
    healthy = await _create(service)
    repository.failing_ids.add(broken.id)

    with caplog.at_level(logging.ERROR, logger="addressdesk.tickets.priority"):
        changed = await PriorityUpdater(repository).run(healthy.due_date)

    assert changed == 1
    assert (await repository.load(healthy.id)).priority == TicketPriority.CRITICAL
    assert (await repository.load(broken.id)).priority == TicketPriority.MEDIUM
    assert "connection reset by peer" in caplog.text


@pytest.mark.asyncio
async def test_priority_run_accepts_naive_now(service):
    ticket = await _create(service)

    changed = await service.run_priority_update(now=datetime(2024, 1, 23, 12, 0))

    refreshed = (await service.get_ticket(ticket.id)).ticket
    assert changed == 1
    assert refreshed.priority == TicketPriority.CRITICAL
    assert refreshed.updated_at.tzinfo is not None
