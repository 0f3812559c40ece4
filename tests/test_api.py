from datetime import date

import pytest
from fastapi.testclient import TestClient

from backoffice.db import get_db
from backoffice.main import app
from backoffice.services.contract_lifecycle import MISSING_PAYMENT_MESSAGE


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def _create_contract(client):
    plan = client.post("/api/v1/plans", json={"name": "MEO Light", "monthly_price": "15000"})
    assert plan.status_code == 201
    account = client.post(
        "/api/v1/accounts",
        json={"account_name": "Ramen Tsubaki", "admin_email": "info@tsubaki.example"},
    )
    assert account.status_code == 201
    contract = client.post(
        "/api/v1/contracts",
        json={
            "account_id": account.json()["id"],
            "plan_id": plan.json()["id"],
            "start_date": "2026-09-01",
        },
    )
    assert contract.status_code == 201
    return contract.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_contract_snapshot_and_listing(client):
    contract = _create_contract(client)
    assert contract["status"] == "lead"
    assert contract["contract_monthly_price_snapshot"] == "15000.00"

    listing = client.get("/api/v1/contracts", params={"status": "lead"})
    assert listing.status_code == 200
    body = listing.json()
    assert body["count"] == 1
    assert body["items"][0]["id"] == contract["id"]


def test_blocked_transition_returns_conflict_with_blockers(client):
    contract = _create_contract(client)
    won = client.post(
        f"/api/v1/contracts/{contract['id']}/status",
        json={"status": "closed_won", "reason": "Signed"},
    )
    assert won.status_code == 200
    assert won.json()["status"] == "closed_won"

    response = client.post(
        f"/api/v1/contracts/{contract['id']}/status",
        json={"status": "active", "reason": "Go live"},
        headers={"X-Request-ID": "req-123"},
    )

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "transition_rejected"
    assert body["message"] == MISSING_PAYMENT_MESSAGE
    assert body["details"] == {"blockers": [MISSING_PAYMENT_MESSAGE]}
    assert body["request_id"] == "req-123"

    options = client.get(f"/api/v1/contracts/{contract['id']}/transitions").json()
    assert options == [
        {"status": "active", "allowed": False, "blockers": [MISSING_PAYMENT_MESSAGE]}
    ]


def test_status_change_requires_reason(client):
    contract = _create_contract(client)

    response = client.post(
        f"/api/v1/contracts/{contract['id']}/status",
        json={"status": "closed_won", "reason": ""},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "A reason is required"


def test_missing_contract_uses_error_payload(client):
    response = client.get("/api/v1/contracts/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "http_404"
    assert body["message"] == "Contract not found"
    assert body["request_id"]


def test_invalid_payment_day_is_validation_error(client):
    response = client.post(
        "/api/v1/contracts",
        json={
            "account_id": "00000000-0000-0000-0000-000000000000",
            "plan_id": "00000000-0000-0000-0000-000000000000",
            "start_date": "2026-09-01",
            "payment_day": 40,
        },
    )

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_notes_and_ops_log_history(client):
    contract = _create_contract(client)
    note = client.post(
        f"/api/v1/contracts/{contract['id']}/notes", json={"note": "Owner prefers LINE"}
    )
    assert note.status_code == 201

    logs = client.get(f"/api/v1/contracts/{contract['id']}/ops-logs").json()
    assert [log["action"] for log in logs] == ["note_added"]


def test_settlement_flow_over_http(client, make_agent, credit_agent):
    agent = make_agent()
    credit_agent(agent, date(2026, 9, 1), 8)

    created = client.post(
        f"/api/v1/agents/{agent.id}/settlements", json={"billing_month": "2026-09"}
    )
    assert created.status_code == 201
    settlement = created.json()
    assert settlement["total_amount"] == "24000.00"

    duplicate = client.post(
        f"/api/v1/agents/{agent.id}/settlements", json={"billing_month": "2026-09"}
    )
    assert duplicate.status_code == 409

    invoiced = client.post(f"/api/v1/settlements/{settlement['id']}/invoice")
    assert invoiced.json()["status"] == "invoiced"

    requested = client.post(
        f"/api/v1/settlements/{settlement['id']}/payout/request", json={"method": "manual"}
    )
    assert requested.status_code == 200
    assert requested.json()["payout_status"] == "requested"


def test_overdue_board_endpoint(client):
    response = client.get("/api/v1/overdue")

    assert response.status_code == 200
    assert response.json()["count"] == 0


def test_unknown_route_uses_error_payload_and_echoes_request_id(client):
    response = client.get("/api/v1/nowhere", headers={"X-Request-ID": "req-404"})
    assert response.status_code == 404
    assert response.headers["X-Request-ID"] == "req-404"
    body = response.json()
    assert body["code"] == "http_404"
    assert body["message"] == "Not Found"
    assert body["request_id"] == "req-404"
