from __future__ import annotations

import random
from datetime import datetime, timezone

import pytest

from addressdesk.core.config import Settings
from addressdesk.tickets.assignment import AssignmentSelector
from addressdesk.tickets.memory import InMemoryStaffDirectory, InMemoryTicketRepository
from addressdesk.tickets.models import StaffMember
from addressdesk.tickets.service import TicketService
from addressdesk.tickets.state import Department, StaffRole

# Monday 2024-01-15 09:00 UTC
MONDAY_MORNING = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


def make_staff(
    staff_id: str,
    *,
    department: Department = Department.GIS,
    role: StaffRole = StaffRole.GIS_STAFF,
    available: bool = True,
) -> StaffMember:
    return StaffMember(
        id=staff_id,
        name=staff_id.title(),
        email=f"{staff_id}@county.example",
        department=department,
        role=role,
        is_available_for_assignment=available,
    )


def make_intake(**overrides) -> dict:
    data = {
        "first_name": "Maria",
        "last_name": "Garza",
        "email": "maria.garza@example.com",
        "mobile_phone": "(956) 555-0134",
        "request_type": "New Address",
        "premise_type": "Residence",
        "county": "Hidalgo",
        "street_name": "Mile 5 Rd",
        "x_coordinate": -98.2,
        "y_coordinate": 26.3,
    }
    data.update(overrides)
    return data


@pytest.fixture
def settings() -> Settings:
    return Settings(storage_backend="memory")


@pytest.fixture
def staff_directory() -> InMemoryStaffDirectory:
    return InMemoryStaffDirectory(
        [
            make_staff("alice"),
            make_staff("bob"),
            make_staff("vera", role=StaffRole.GIS_VERIFIER),
            make_staff("fiona", department=Department.FRONT_DESK, role=StaffRole.FRONT_DESK),
        ]
    )


@pytest.fixture
def repository() -> InMemoryTicketRepository:
    return InMemoryTicketRepository()


@pytest.fixture
def service(repository, staff_directory, settings) -> TicketService:
    return TicketService(
        repository,
        staff_directory,
        settings=settings,
        selector=AssignmentSelector(random.Random(7)),
        clock=lambda: MONDAY_MORNING,
    )
