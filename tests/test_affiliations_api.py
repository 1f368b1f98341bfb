import pytest
from fastapi.testclient import TestClient

from venturelink.core.dependencies import get_current_user_id, get_roster, get_roster_store
from venturelink.main import create_app
from venturelink.services.roster.synchronizer import CompanyRosterSynchronizer

BASE = "/api/investor/affiliations"


@pytest.fixture
def client(store):
    app = create_app(configure_logging=False)
    app.dependency_overrides[get_current_user_id] = lambda: "u1"
    app.dependency_overrides[get_roster_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client


def test_list_returns_only_callers_rows(client, store):
    store.seed("u1", "Acme", "Partner")
    store.seed("u2", "Initech", "Founder")

    response = client.get(f"{BASE}/")

    assert response.status_code == 200
    assert [row["company_name"] for row in response.json()] == ["Acme"]


def test_create_update_delete_flow(client, store):
    created = client.post(f"{BASE}/", json={"company_name": "Acme", "title": "Partner"})
    assert created.status_code == 201
    affiliation_id = created.json()["id"]
    assert store.rows[0]["investor_id"] == "u1"

    updated = client.put(
        f"{BASE}/{affiliation_id}",
        json={"company_name": "Acme Inc", "title": "Partner", "website_url": "acme.com"},
    )
    assert updated.status_code == 200
    assert updated.json()["company_name"] == "Acme Inc"
    assert updated.json()["website_url"] == "acme.com"

    deleted = client.delete(f"{BASE}/{affiliation_id}")
    assert deleted.status_code == 204

    again = client.delete(f"{BASE}/{affiliation_id}")
    assert again.status_code == 404
    assert again.json()["error"] == "NOT_FOUND"


def test_create_with_invalid_field_is_rejected(client, store):
    response = client.post(f"{BASE}/", json={"company_name": "", "title": "CEO"})

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "VALIDATION_ERROR"
    assert body["field"] == "company_name"
    assert body["message"] == "Company name is required"
    assert store.count_calls("insert") == 0


def test_current_and_summary(client, store):
    store.seed("u1", "Initech", "Software Engineer")
    store.seed("u1", "Acme", "Managing Partner")

    current = client.get(f"{BASE}/current")
    summary = client.get(f"{BASE}/summary")

    assert [row["company_name"] for row in current.json()] == ["Acme"]
    assert summary.json() == {"count": 2, "current_count": 1, "completion_percentage": 100.0}


def test_validate_reports_field_messages(client):
    response = client.post(f"{BASE}/validate", json={"company_name": "A", "title": "CEO", "website_url": "nope"})

    assert response.status_code == 200
    assert response.json() == {
        "errors": {
            "company_name": "Company name must be at least 2 characters",
            "website_url": "Please enter a valid website URL",
        },
        "submittable": False,
    }


def test_remote_failure_maps_to_bad_gateway(client, store):
    store.fail_with = RuntimeError("connection reset")

    response = client.get(f"{BASE}/")

    assert response.status_code == 502
    assert "connection reset" in response.json()["message"]


def test_missing_token_is_unauthorized(store):
    app = create_app(configure_logging=False)
    app.dependency_overrides[get_roster_store] = lambda: store

    with TestClient(app) as test_client:
        response = test_client.get(f"{BASE}/")

    assert response.status_code == 401
    assert response.json()["error"] == "AUTH_ERROR"


def test_create_for_identity_that_no_longer_owns_roster_conflicts(store, silent_identity):
    store.seed("u1", "Acme", "Partner")
    app = create_app(configure_logging=False)

    async def roster_loaded_for_previous_user():
        roster = CompanyRosterSynchronizer(store, silent_identity, auto_initialize=False)
        await roster.initialize()
        silent_identity.user_id = "u2"
        try:
            yield roster
        finally:
            await roster.aclose()

    app.dependency_overrides[get_current_user_id] = lambda: "u2"
    app.dependency_overrides[get_roster] = roster_loaded_for_previous_user

    with TestClient(app) as test_client:
        response = test_client.post(f"{BASE}/", json={"company_name": "Globex", "title": "CEO"})

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "IDENTITY_MISMATCH"
    assert body["message"] == "Roster belongs to 'u1' but current identity is 'u2'"
    assert store.count_calls("insert") == 0
