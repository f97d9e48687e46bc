from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from addressdesk.api.routes import tickets as ticket_routes
from addressdesk.dependencies import tickets as ticket_deps
from addressdesk.dependencies.auth import Role, User
from addressdesk.main import create_app
from addressdesk.tickets.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from addressdesk.tickets.intake import validate_intake
from addressdesk.tickets.models import HistoryEntry, StaffRef, Ticket, TicketDetail, TicketFilter
from addressdesk.tickets.state import Department, StaffRole, TicketPriority, TicketStatus, WorkflowStage

from conftest import MONDAY_MORNING, make_intake, make_staff


def _make_detail(
    *,
    stage: WorkflowStage = WorkflowStage.ADDRESSING,
    status: TicketStatus = TicketStatus.IN_PROGRESS,
) -> TicketDetail:
    entry = HistoryEntry(
        workflow_stage=WorkflowStage.ADDRESSING,
        status=TicketStatus.IN_PROGRESS,
        assigned_to="alice",
        notes="Ticket created (automatically assigned to Alice for addressing)",
        action_by="front-desk",
        timestamp=MONDAY_MORNING,
    )
    ticket = Ticket(
        id="ticket-1",
        ticket_number="240115090000",
        intake=validate_intake(make_intake()),
        status=status,
        workflow_stage=stage,
        priority=TicketPriority.MEDIUM,
        created_by="front-desk",
        created_at=MONDAY_MORNING,
        updated_at=MONDAY_MORNING,
        due_date=MONDAY_MORNING + timedelta(days=7),
        time_to_resolve=5,
        assigned_to="alice",
        history=(entry,),
        version=1,
    )
    return TicketDetail(ticket=ticket, assignee=StaffRef(id="alice", name="Alice", email="alice@county.example"))


@pytest.fixture
def ticket_client():
    app = create_app()
    service = AsyncMock()

    staff = User("gis", "gis", (Role.GIS, Role.VIEWER))
    front_desk = User("front-desk", "front desk", (Role.FRONT_DESK, Role.VIEWER))
    viewer = User("viewer", "viewer", (Role.VIEWER,))
    admin = User("admin", "admin", (Role.ADMIN, Role.VIEWER))

    async def override_service():
        return service

    app.dependency_overrides[ticket_routes.get_ticket_service] = override_service
    app.dependency_overrides[ticket_deps.require_staff] = lambda: staff
    app.dependency_overrides[ticket_deps.require_front_desk] = lambda: front_desk
    app.dependency_overrides[ticket_deps.require_viewer] = lambda: viewer
    app.dependency_overrides[ticket_deps.require_admin] = lambda: admin

    client = TestClient(app)
    try:
        yield client, service
    finally:
        app.dependency_overrides.clear()


def test_create_ticket_endpoint_returns_created(ticket_client):
    client, service = ticket_client
    service.create_ticket = AsyncMock(return_value=_make_detail())

    response = client.post("/tickets", json={**make_intake(), "priority": "High"})

    assert response.status_code == 201
    body = response.json()
    assert body["ticket_number"] == "240115090000"
    assert body["workflow_stage"] == "Addressing"
    assert body["assignee"]["name"] == "Alice"
    assert body["intake"]["county"] == "Hidalgo"
    args, kwargs = service.create_ticket.await_args
    assert args[0]["first_name"] == "Maria"
    assert kwargs == {"actor_id": "front-desk", "priority": TicketPriority.HIGH}


def test_create_ticket_reports_validation_problems(ticket_client):
    client, service = ticket_client
    problems = ["email is required", "county must be one of: Hidalgo, Willacy"]
    service.create_ticket = AsyncMock(side_effect=ValidationError("Invalid ticket intake", problems=problems))

    response = client.post("/tickets", json={"first_name": "Maria"})

    assert response.status_code == 400
    assert response.json()["detail"]["problems"] == problems


def test_list_tickets_endpoint_builds_filter(ticket_client):
    client, service = ticket_client
    service.list_tickets = AsyncMock(return_value=[_make_detail()])

    response = client.get("/tickets", params={"status": "In Progress", "workflow_stage": "Addressing"})

    assert response.status_code == 200
    assert len(response.json()) == 1
    service.list_tickets.assert_awaited_with(
        TicketFilter(status=TicketStatus.IN_PROGRESS, workflow_stage=WorkflowStage.ADDRESSING)
    )


def test_related_tickets_endpoint(ticket_client):
    client, service = ticket_client
    service.list_related_tickets = AsyncMock(return_value=[_make_detail()])

    response = client.get("/tickets/related", params={"property_id": "P-100", "ticket_id": "ticket-2"})
    missing = client.get("/tickets/related")

    assert response.status_code == 200
    assert response.json()[0]["id"] == "ticket-1"
    assert missing.status_code == 422
    service.list_related_tickets.assert_awaited_once_with("P-100", exclude_ticket_id="ticket-2")
    service.get_ticket.assert_not_awaited()


def test_get_ticket_returns_not_found(ticket_client):
    client, service = ticket_client
    service.get_ticket = AsyncMock(side_effect=NotFoundError("Ticket missing not found"))

    response = client.get("/tickets/missing")

    assert response.status_code == 404
    assert response.json()["detail"] == "Ticket missing not found"


def test_transition_endpoint_passes_request_through(ticket_client):
    client, service = ticket_client
    service.transition = AsyncMock(return_value=_make_detail(stage=WorkflowStage.VERIFICATION))

    response = client.post(
        "/tickets/ticket-1/transition",
        json={"target_stage": "Verification", "approved_address": "1 Main St"},
    )

    assert response.status_code == 200
    assert response.json()["workflow_stage"] == "Verification"
    service.transition.assert_awaited_with(
        "ticket-1",
        "Verification",
        actor_id="gis",
        note="",
        approved_address="1 Main St",
        verification_note=None,
    )


@pytest.mark.parametrize(
    "error,status_code",
    [
        (InvalidTransitionError("nope"), 409),
        (ConflictError("stale"), 409),
        (ValidationError("missing address"), 400),
        (StorageError("down"), 503),
    ],
)
def test_transition_endpoint_maps_errors(ticket_client, error, status_code):
    client, service = ticket_client
    service.transition = AsyncMock(side_effect=error)

    response = client.post("/tickets/ticket-1/transition", json={"target_stage": "Completed"})

    assert response.status_code == status_code


def test_close_reopen_and_reassign_endpoints(ticket_client):
    client, service = ticket_client
    service.close_ticket = AsyncMock(
        return_value=_make_detail(stage=WorkflowStage.COMPLETED, status=TicketStatus.CLOSED)
    )
    service.reopen_ticket = AsyncMock(return_value=_make_detail())
    service.reassign = AsyncMock(return_value=_make_detail())

    closed = client.post("/tickets/ticket-1/close", json={"note": "done"})
    reopened = client.post("/tickets/ticket-1/reopen", json={"target_stage": "Addressing", "note": "redo"})
    reassigned = client.post("/tickets/ticket-1/reassign", json={"staff_id": "bob"})

    assert closed.json()["status"] == "Closed"
    assert reopened.status_code == 200
    assert reassigned.status_code == 200
    service.close_ticket.assert_awaited_with("ticket-1", actor_id="gis", note="done")
    service.reopen_ticket.assert_awaited_with(
        "ticket-1", WorkflowStage.ADDRESSING, actor_id="gis", note="redo"
    )
    service.reassign.assert_awaited_with("ticket-1", "bob", actor_id="gis", note="")


def test_history_endpoint_returns_entries(ticket_client):
    client, service = ticket_client
    service.get_history = AsyncMock(return_value=list(_make_detail().ticket.history))

    response = client.get("/tickets/ticket-1/history")

    assert response.status_code == 200
    assert response.json()[0]["action_by"] == "front-desk"


def test_update_priorities_endpoint(ticket_client):
    client, service = ticket_client
    service.run_priority_update = AsyncMock(return_value=3)

    response = client.post("/tickets/update-priorities")

    assert response.status_code == 200
    assert response.json() == {"updated": 3}


def test_signature_endpoints(ticket_client):
    client, service = ticket_client
    detail = _make_detail(stage=WorkflowStage.READY_TO_CONTACT)
    service.request_signature = AsyncMock(return_value=detail)
    service.get_signature_ticket = AsyncMock(return_value=detail)
    service.complete_signature = AsyncMock(side_effect=ValidationError("This signature has already been completed"))

    requested = client.post("/tickets/ticket-1/signature-request")
    lookup = client.get("/signature/abc")
    completed = client.post("/signature/abc/complete", json={})

    assert requested.status_code == 200
    assert lookup.json()["ticket_number"] == "240115090000"
    assert completed.status_code == 400
    service.request_signature.assert_awaited_with("ticket-1", actor_id="gis")


def test_staff_endpoints(ticket_client):
    client, service = ticket_client
    gina = make_staff("gina")
    service.list_staff = AsyncMock(return_value=[gina])
    service.create_staff = AsyncMock(return_value=gina)
    service.update_staff = AsyncMock(return_value=gina)
    service.get_staff = AsyncMock(side_effect=NotFoundError("Staff member nobody not found"))

    listed = client.get("/staff")
    created = client.post("/staff", json={"name": "Gina", "email": "gina@county.example", "department": "GIS"})
    updated = client.patch("/staff/gina", json={"is_available_for_assignment": False})
    missing = client.get("/staff/nobody")

    assert listed.json()[0]["department"] == "GIS"
    assert created.status_code == 201
    assert updated.status_code == 200
    assert missing.status_code == 404
    service.create_staff.assert_awaited_with(
        name="Gina",
        email="gina@county.example",
        department=Department.GIS,
        role=StaffRole.USER,
        is_available_for_assignment=True,
    )
    service.update_staff.assert_awaited_with("gina", is_available_for_assignment=False)


def test_ping():
    client = TestClient(create_app())

    assert client.get("/ping").json() == {"status": "ok"}
