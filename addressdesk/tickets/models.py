from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from .state import Department, StaffRole, TicketPriority, TicketStatus, WorkflowStage


class RequestType(str, Enum):
    NEW_ADDRESS = "New Address"
    VERIFY_EXISTING = "Verify Existing Address"


class PremiseType(str, Enum):
    RESIDENCE = "Residence"
    COMMERCIAL = "Commercial"
    BUILDING_STRUCTURE = "Building Structure"
    UTILITY = "Utility"


class County(str, Enum):
    HIDALGO = "Hidalgo"
    WILLACY = "Willacy"


@dataclass(frozen=True, slots=True)
class TicketIntake:
    """Customer supplied request data captured by the front desk."""

    first_name: str
    last_name: str
    email: str
    request_type: RequestType
    premise_type: PremiseType
    county: County
    street_name: str
    x_coordinate: float
    y_coordinate: float
    mobile_phone: str | None = None
    landline_phone: str | None = None
    existing_address: str | None = None
    additional_info: str | None = None
    property_id: str | None = None
    closest_intersection: str | None = None
    subdivision: str | None = None
    lot_number: str | None = None


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """One immutable record of the ticket's audit trail."""

    workflow_stage: WorkflowStage
    status: TicketStatus
    assigned_to: str | None
    notes: str
    action_by: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class StaffMember:
    """Staff record consulted by the assignment selector."""

    id: str
    name: str
    email: str
    department: Department
    role: StaffRole
    is_available_for_assignment: bool = True


@dataclass(frozen=True, slots=True)
class StaffRef:
    """Display friendly reference to an assignee."""

    id: str
    name: str
    email: str

    @classmethod
    def from_staff(cls, staff: StaffMember) -> "StaffRef":
        return cls(id=staff.id, name=staff.name, email=staff.email)


# Fields a mutation may change. Identity, intake data, creation data and the
# history sequence itself are never part of a mutation's changes.
MUTABLE_FIELDS = frozenset(
    {
        "status",
        "workflow_stage",
        "priority",
        "time_to_resolve",
        "assigned_to",
        "address_created",
        "address_verified",
        "approved_address",
        "verification_note",
        "signature_token",
        "signature_requested",
        "signature_requested_at",
        "signature_requested_by",
        "signature_completed",
        "signature_completed_at",
        "address_letter_path",
    }
)


@dataclass(frozen=True, slots=True)
class TicketMutation:
    """Field changes plus at most one history entry, written as one unit."""

    changes: Mapping[str, Any]
    updated_at: datetime
    entry: HistoryEntry | None = None

    def __post_init__(self) -> None:
        unknown = set(self.changes) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be mutated: {', '.join(sorted(unknown))}")


@dataclass(slots=True)
class Ticket:
    """Aggregate representing an address assignment request."""

    id: str
    ticket_number: str
    intake: TicketIntake
    status: TicketStatus
    workflow_stage: WorkflowStage
    priority: TicketPriority
    created_by: str
    created_at: datetime
    updated_at: datetime
    due_date: datetime | None
    time_to_resolve: int | None = None
    assigned_to: str | None = None
    address_created: bool = False
    address_verified: bool = False
    approved_address: str | None = None
    verification_note: str | None = None
    signature_token: str | None = None
    signature_requested: bool = False
    signature_requested_at: datetime | None = None
    signature_requested_by: str | None = None
    signature_completed: bool = False
    signature_completed_at: datetime | None = None
    address_letter_path: str | None = None
    history: tuple[HistoryEntry, ...] = field(default_factory=tuple)
    version: int = 0

    def apply(self, mutation: TicketMutation) -> "Ticket":
        """Return a copy with ``mutation`` applied and the version bumped."""

        history = self.history if mutation.entry is None else (*self.history, mutation.entry)
        return replace(
            self,
            **dict(mutation.changes),
            updated_at=mutation.updated_at,
            history=history,
            version=self.version + 1,
        )


@dataclass(slots=True)
class TicketDetail:
    """Ticket with its assignee resolved for display."""

    ticket: Ticket
    assignee: StaffRef | None = None


@dataclass(frozen=True, slots=True)
class TicketFilter:
    """Query understood by every ticket repository implementation."""

    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    assigned_to: str | None = None
    workflow_stage: WorkflowStage | None = None
    exclude_statuses: frozenset[TicketStatus] = frozenset()
    has_due_date: bool | None = None
    signature_token: str | None = None
    property_id: str | None = None
    exclude_id: str | None = None

    def matches(self, ticket: Ticket) -> bool:
        if self.status is not None and ticket.status != self.status:
            return False
        if self.priority is not None and ticket.priority != self.priority:
            return False
        if self.assigned_to is not None and ticket.assigned_to != self.assigned_to:
            return False
        if self.workflow_stage is not None and ticket.workflow_stage != self.workflow_stage:
            return False
        if ticket.status in self.exclude_statuses:
            return False
        if self.has_due_date is not None and (ticket.due_date is not None) != self.has_due_date:
            return False
        if self.signature_token is not None and ticket.signature_token != self.signature_token:
            return False
        if self.property_id is not None and ticket.intake.property_id != self.property_id:
            return False
        if self.exclude_id is not None and ticket.id == self.exclude_id:
            return False
        return True
