from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class WorkflowStage(str, Enum):
    """Authoritative position of a ticket in the addressing workflow."""

    FRONT_DESK = "Front Desk"
    ADDRESSING = "Addressing"
    VERIFICATION = "Verification"
    READY_TO_CONTACT = "Ready to Contact Customer"
    COMPLETED = "Completed"


class TicketStatus(str, Enum):
    """Coarse ticket status derived from the workflow stage."""

    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class TicketPriority(str, Enum):
    """Urgency tiers derived from the business days left before the due date."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def urgency(self) -> int:
        return _URGENCY[self]


_URGENCY = {
    TicketPriority.LOW: 0,
    TicketPriority.MEDIUM: 1,
    TicketPriority.HIGH: 2,
    TicketPriority.CRITICAL: 3,
}

TERMINAL_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})


class Department(str, Enum):
    FRONT_DESK = "Front Desk"
    GIS = "GIS"
    ADMIN = "Admin"
    OTHER = "Other"


class StaffRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    GIS_STAFF = "gis_staff"
    GIS_VERIFIER = "gis_verifier"
    FRONT_DESK = "front_desk"


@dataclass(frozen=True, slots=True)
class AssignmentRule:
    """Staff pool queried when a ticket enters a stage."""

    department: Department
    role: StaffRole | None = None
    exclude_current: bool = False


class EdgeKind(str, Enum):
    FORWARD = "forward"
    REJECTION = "rejection"
    REOPEN = "reopen"


@dataclass(frozen=True, slots=True)
class TransitionRule:
    """A legal edge of the workflow graph and the side effects it carries."""

    source: WorkflowStage
    target: WorkflowStage
    kind: EdgeKind
    status: TicketStatus | None = None
    assignment: AssignmentRule | None = None
    requires_note: bool = False
    requires_approved_address: bool = False


ADDRESSER_POOL = AssignmentRule(Department.GIS, StaffRole.GIS_STAFF)
VERIFIER_POOL = AssignmentRule(Department.GIS, exclude_current=True)
FRONT_DESK_POOL = AssignmentRule(Department.FRONT_DESK, StaffRole.FRONT_DESK)


_DEFAULT_RULES: tuple[TransitionRule, ...] = (
    TransitionRule(
        WorkflowStage.FRONT_DESK,
        WorkflowStage.ADDRESSING,
        EdgeKind.FORWARD,
        status=TicketStatus.IN_PROGRESS,
        assignment=ADDRESSER_POOL,
    ),
    TransitionRule(
        WorkflowStage.ADDRESSING,
        WorkflowStage.VERIFICATION,
        EdgeKind.FORWARD,
        status=TicketStatus.IN_PROGRESS,
        assignment=VERIFIER_POOL,
        requires_approved_address=True,
    ),
    TransitionRule(
        WorkflowStage.VERIFICATION,
        WorkflowStage.READY_TO_CONTACT,
        EdgeKind.FORWARD,
        assignment=FRONT_DESK_POOL,
    ),
    TransitionRule(
        WorkflowStage.VERIFICATION,
        WorkflowStage.ADDRESSING,
        EdgeKind.REJECTION,
        status=TicketStatus.IN_PROGRESS,
        requires_note=True,
    ),
    TransitionRule(
        WorkflowStage.READY_TO_CONTACT,
        WorkflowStage.COMPLETED,
        EdgeKind.FORWARD,
        status=TicketStatus.RESOLVED,
    ),
    TransitionRule(
        WorkflowStage.COMPLETED,
        WorkflowStage.ADDRESSING,
        EdgeKind.REOPEN,
        status=TicketStatus.IN_PROGRESS,
        assignment=ADDRESSER_POOL,
        requires_note=True,
    ),
    TransitionRule(
        WorkflowStage.COMPLETED,
        WorkflowStage.VERIFICATION,
        EdgeKind.REOPEN,
        status=TicketStatus.IN_PROGRESS,
        assignment=VERIFIER_POOL,
        requires_note=True,
    ),
)


class TicketStateMachine:
    """Validate workflow stage transitions against the transition table."""

    def __init__(self, rules: tuple[TransitionRule, ...] | None = None) -> None:
        table: dict[tuple[WorkflowStage, WorkflowStage], TransitionRule] = {}
        for rule in rules or _DEFAULT_RULES:
            table[(rule.source, rule.target)] = rule
        self._rules: Mapping[tuple[WorkflowStage, WorkflowStage], TransitionRule] = table

    @classmethod
    def initial_stage(cls) -> WorkflowStage:
        return WorkflowStage.FRONT_DESK

    @classmethod
    def initial_status(cls) -> TicketStatus:
        return TicketStatus.IN_PROGRESS

    def rule_for(self, current: WorkflowStage, target: WorkflowStage) -> TransitionRule | None:
        return self._rules.get((current, target))

    def can_transition(self, current: WorkflowStage, target: WorkflowStage) -> bool:
        return (current, target) in self._rules

    def targets(self, current: WorkflowStage) -> list[WorkflowStage]:
        return [target for (source, target) in self._rules if source == current]

    @staticmethod
    def can_close(stage: WorkflowStage, status: TicketStatus) -> bool:
        return stage == WorkflowStage.COMPLETED and status != TicketStatus.CLOSED
