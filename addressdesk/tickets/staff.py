from __future__ import annotations

import uuid
from dataclasses import replace
from enum import Enum
from typing import TypeVar

from .errors import ValidationError
from .intake import EMAIL_RE
from .models import StaffMember
from .state import Department, StaffRole

_MAX_NAME_LENGTH = 60
_MAX_EMAIL_LENGTH = 255

E = TypeVar("E", bound=Enum)


def _choice(enum_type: type[E], value: E | str, key: str, problems: list[str]) -> E | None:
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        problems.append(f"{key} must be one of: {allowed}")
        return None


def _check_name(name: str | None, problems: list[str]) -> str | None:
    name = (name or "").strip()
    if not name:
        problems.append("name is required")
        return None
    if len(name) > _MAX_NAME_LENGTH:
        problems.append(f"name cannot be more than {_MAX_NAME_LENGTH} characters")
    return name


def _check_email(email: str | None, problems: list[str]) -> str | None:
    email = (email or "").strip().lower()
    if not email:
        problems.append("email is required")
        return None
    if len(email) > _MAX_EMAIL_LENGTH or not EMAIL_RE.match(email):
        problems.append("email must be a valid email address")
    return email


def new_staff_member(
    *,
    name: str | None,
    email: str | None,
    department: Department | str = Department.FRONT_DESK,
    role: StaffRole | str = StaffRole.USER,
    is_available_for_assignment: bool = True,
) -> StaffMember:
    """Validate a staff record and give it a fresh id."""

    problems: list[str] = []
    checked_name = _check_name(name, problems)
    checked_email = _check_email(email, problems)
    checked_department = _choice(Department, department, "department", problems)
    checked_role = _choice(StaffRole, role, "role", problems)
    if problems:
        raise ValidationError("Invalid staff member: " + "; ".join(problems), problems=problems)
    return StaffMember(
        id=str(uuid.uuid4()),
        name=checked_name,  # type: ignore[arg-type]
        email=checked_email,  # type: ignore[arg-type]
        department=checked_department,  # type: ignore[arg-type]
        role=checked_role,  # type: ignore[arg-type]
        is_available_for_assignment=is_available_for_assignment,
    )


def updated_staff_member(
    staff: StaffMember,
    *,
    name: str | None = None,
    department: Department | str | None = None,
    role: StaffRole | str | None = None,
    is_available_for_assignment: bool | None = None,
) -> StaffMember:
    """Return ``staff`` with the given fields replaced; ``None`` leaves a field as is."""

    problems: list[str] = []
    changes: dict[str, object] = {}
    if name is not None:
        changes["name"] = _check_name(name, problems)
    if department is not None:
        changes["department"] = _choice(Department, department, "department", problems)
    if role is not None:
        changes["role"] = _choice(StaffRole, role, "role", problems)
    if is_available_for_assignment is not None:
        changes["is_available_for_assignment"] = is_available_for_assignment
    if problems:
        raise ValidationError("Invalid staff update: " + "; ".join(problems), problems=problems)
    return replace(staff, **changes)
