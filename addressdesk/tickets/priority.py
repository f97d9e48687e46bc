from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from opentelemetry import trace

from .dates import business_days_remaining, priority_from_due_date
from .models import Ticket, TicketFilter, TicketMutation
from .repository import TicketRepository
from .state import TERMINAL_STATUSES

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def priority_changes(ticket: Ticket, now: datetime) -> dict[str, Any]:
    """Return the priority and time-to-resolve fields that differ from ``ticket``."""

    if ticket.due_date is None:
        return {}
    changes: dict[str, Any] = {}
    priority = priority_from_due_date(ticket.due_date, now)
    if priority != ticket.priority:
        changes["priority"] = priority
    remaining = max(0, business_days_remaining(now, ticket.due_date))
    if remaining != ticket.time_to_resolve:
        changes["time_to_resolve"] = remaining
    return changes


class PriorityUpdater:
    """Recompute urgency for every open ticket with a due date.

    Maintenance writes carry no history entry. Tickets are written one at a
    time with their own version check, so a failure on one ticket is logged
    and the batch moves on.
    """

    def __init__(self, repository: TicketRepository) -> None:
        self._repository = repository

    async def run(self, now: datetime) -> int:
        """Return the number of tickets whose priority changed."""

        with tracer.start_as_current_span("ticket.priority_update") as span:
            tickets = await self._repository.find(
                TicketFilter(exclude_statuses=TERMINAL_STATUSES, has_due_date=True)
            )
            reprioritised = 0
            failed = 0
            for ticket in tickets:
                try:
                    changes = priority_changes(ticket, now)
                    if not changes:
                        continue
                    await self._repository.atomic_update(
                        ticket.id, ticket.version, TicketMutation(changes=changes, updated_at=now)
                    )
                except Exception:
                    failed += 1
                    logger.exception("Priority update failed for ticket %s", ticket.ticket_number)
                    continue
                if "priority" in changes:
                    reprioritised += 1

            span.set_attribute("tickets.scanned", len(tickets))
            span.set_attribute("tickets.reprioritised", reprioritised)
            span.set_attribute("tickets.failed", failed)
            logger.info(
                "Priority update scanned %d tickets: %d reprioritised, %d failed",
                len(tickets),
                reprioritised,
                failed,
            )
            return reprioritised
