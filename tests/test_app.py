import pytest
from fastapi.testclient import TestClient

from addressdesk.core.config import get_settings
from addressdesk.core.logging import _parse_headers
from addressdesk.main import _to_asyncpg_dsn, create_app

from conftest import make_intake


@pytest.fixture
def memory_settings(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("DUE_DATE_BUSINESS_DAYS", "3")
    get_settings.cache_clear()
    try:
        yield get_settings()
    finally:
        get_settings.cache_clear()


def test_settings_read_from_environment(memory_settings):
    assert memory_settings.storage_backend == "memory"
    assert memory_settings.due_date_business_days == 3
    assert memory_settings.rejection_assignment.value == "previous_addresser"


def test_to_asyncpg_dsn():
    assert _to_asyncpg_dsn("postgresql://u:p@db/desk") == "postgresql+asyncpg://u:p@db/desk"
    assert _to_asyncpg_dsn("postgresql+asyncpg://u:p@db/desk") == "postgresql+asyncpg://u:p@db/desk"


def test_parse_headers_ignores_malformed_items():
    assert _parse_headers("api-key = secret, broken, x=1") == {"api-key": "secret", "x": "1"}
    assert _parse_headers(None) == {}


def test_memory_backend_serves_ticket_workflow(memory_settings):
    headers = {"Authorization": "Bearer front-desk-token"}
    with TestClient(create_app()) as client:
        created = client.post("/tickets", json=make_intake(), headers=headers)
        ticket_id = created.json()["id"]
        history = client.get(f"/tickets/{ticket_id}/history", headers=headers)
        skipped = client.post(
            f"/tickets/{ticket_id}/transition",
            json={"target_stage": "Completed"},
            headers={"Authorization": "Bearer gis-token"},
        )

    assert created.status_code == 201
    assert created.json()["workflow_stage"] == "Addressing"
    assert created.json()["assigned_to"] is None
    assert created.json()["time_to_resolve"] == 3
    assert len(history.json()) == 1
    assert "no staff available for auto-assignment" in history.json()[0]["notes"]
    assert skipped.status_code == 409


def test_memory_backend_assigns_staff_added_by_admin(memory_settings):
    admin = {"Authorization": "Bearer admin-token"}
    with TestClient(create_app()) as client:
        forbidden = client.get("/staff", headers={"Authorization": "Bearer gis-token"})
        added = client.post(
            "/staff",
            json={"name": "Gina", "email": "gina@county.example", "department": "GIS", "role": "gis_staff"},
            headers=admin,
        )
        duplicate = client.post("/staff", json={"name": "G", "email": "gina@county.example"}, headers=admin)
        created = client.post("/tickets", json=make_intake(property_id="P-1"), headers=admin)
        related = client.get("/tickets/related", params={"property_id": "P-1"}, headers=admin)

    assert forbidden.status_code == 403
    assert added.status_code == 201
    assert duplicate.status_code == 409
    assert created.json()["assigned_to"] == added.json()["id"]
    assert [ticket["id"] for ticket in related.json()] == [created.json()["id"]]
