from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Sequence

from .models import StaffMember
from .repository import StaffDirectory
from .state import AssignmentRule

logger = logging.getLogger(__name__)

NO_STAFF_NOTE = "no staff available for auto-assignment"


@dataclass(frozen=True, slots=True)
class AssignmentResult:
    """Outcome of an auto-assignment attempt.

    ``unavailable`` is a recorded outcome rather than an error: the
    transition still completes and the ticket is left unassigned.
    """

    staff: StaffMember | None

    @property
    def unavailable(self) -> bool:
        return self.staff is None

    def describe(self, purpose: str = "") -> str:
        if self.staff is None:
            return NO_STAFF_NOTE
        suffix = f" for {purpose}" if purpose else ""
        return f"automatically assigned to {self.staff.name}{suffix}"


class AssignmentSelector:
    """Pick a staff member at random, rotating away from the current assignee."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def select(self, pool: Sequence[StaffMember], exclude: str | None = None) -> StaffMember | None:
        available = [staff for staff in pool if staff.is_available_for_assignment]
        if not available:
            return None

        eligible = available
        if exclude is not None:
            eligible = [staff for staff in available if staff.id != exclude]
        if eligible:
            return self._rng.choice(eligible)

        logger.debug("Only the excluded assignee %s is available; reusing them", exclude)
        return self._rng.choice(available)

    async def assign(
        self,
        directory: StaffDirectory,
        rule: AssignmentRule,
        *,
        current_assignee: str | None = None,
    ) -> AssignmentResult:
        """Query ``directory`` for the pool named by ``rule`` and select from it."""

        pool = await directory.find_available(rule.department, rule.role)
        exclude = current_assignee if rule.exclude_current else None
        staff = self.select(pool, exclude=exclude)
        if staff is None:
            logger.warning(
                "No available staff in %s (role=%s) for auto-assignment",
                rule.department.value,
                rule.role.value if rule.role else "any",
            )
        return AssignmentResult(staff=staff)
