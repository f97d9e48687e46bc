"""Ticket workflow domain models and services."""

from .engine import WorkflowEngine
from .errors import (
    ConflictError,
    DuplicateTicketNumberError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
    WorkflowError,
)
from .models import HistoryEntry, StaffMember, StaffRef, Ticket, TicketDetail, TicketFilter, TicketIntake
from .service import TicketService
from .state import TicketPriority, TicketStateMachine, TicketStatus, WorkflowStage

__all__ = [
    "ConflictError",
    "DuplicateTicketNumberError",
    "HistoryEntry",
    "InvalidTransitionError",
    "NotFoundError",
    "StaffMember",
    "StaffRef",
    "StorageError",
    "Ticket",
    "TicketDetail",
    "TicketFilter",
    "TicketIntake",
    "TicketPriority",
    "TicketService",
    "TicketStateMachine",
    "TicketStatus",
    "ValidationError",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowStage",
]
