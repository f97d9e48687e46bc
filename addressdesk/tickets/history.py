"""Append-only audit trail helpers."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from .models import HistoryEntry, Ticket
from .state import TicketStatus, WorkflowStage

SYSTEM_ACTOR = "system"


def entry_timestamp(history: Sequence[HistoryEntry], now: datetime) -> datetime:
    """Clamp ``now`` so timestamps never decrease within one ticket's history."""

    if history and history[-1].timestamp > now:
        return history[-1].timestamp
    return now


def make_entry(
    ticket: Ticket,
    *,
    workflow_stage: WorkflowStage,
    status: TicketStatus,
    assigned_to: str | None,
    notes: str,
    action_by: str | None,
    now: datetime,
) -> HistoryEntry:
    return HistoryEntry(
        workflow_stage=workflow_stage,
        status=status,
        assigned_to=assigned_to,
        notes=notes,
        action_by=action_by or SYSTEM_ACTOR,
        timestamp=entry_timestamp(ticket.history, now),
    )


def is_extension(before: Sequence[HistoryEntry], after: Sequence[HistoryEntry]) -> bool:
    """True when ``after`` is ``before`` plus exactly one appended entry."""

    return len(after) == len(before) + 1 and tuple(after[: len(before)]) == tuple(before)


def last_assignee_in_stage(history: Sequence[HistoryEntry], stage: WorkflowStage) -> str | None:
    for entry in reversed(history):
        if entry.workflow_stage == stage and entry.assigned_to:
            return entry.assigned_to
    return None
