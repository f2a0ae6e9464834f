"""
Tests for the check endpoints, with the ledger and relayer faked out.
"""

import pytest
from fastapi.testclient import TestClient

from confidential_checks.auth.verify import actor_dependency
from confidential_checks.dependencies import get_lifecycle_manager, get_status_channel
from confidential_checks.main import app
from confidential_checks.models.domain.check_domain import Actor
from confidential_checks.services.errors import RejectedByUser
from confidential_checks.services.transaction_status import TransactionStatusChannel


@pytest.fixture
def status_channel():
    # Long enough that no status expires between two requests
    return TransactionStatusChannel(success_clear_seconds=30, error_clear_seconds=30)


@pytest.fixture
def client(manager, status_channel):
    app.dependency_overrides[get_lifecycle_manager] = lambda: manager
    app.dependency_overrides[get_status_channel] = lambda: status_channel
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def as_actor():
    def _apply(actor: Actor):
        app.dependency_overrides[actor_dependency] = lambda: actor

    return _apply


def test_create_requires_connected_wallet(client):
    response = client.post("/checks", json={"name": "Jane", "position": "Engineer", "risk_score": 85})

    assert response.status_code == 401
    assert response.json()["error_code"] == "not_authenticated"


def test_create_and_decrypt_flow(client, as_actor, alice):
    as_actor(alice)

    created = client.post("/checks", json={"name": "Jane", "position": "Engineer", "risk_score": 85})
    assert created.status_code == 201
    check = created.json()["check"]
    assert check["status"] == "pending"
    assert check["clear_score"] is None

    decrypted = client.post(f"/checks/{check['candidate_id']}/decrypt")
    assert decrypted.status_code == 200
    assert decrypted.json() == {
        "candidate_id": check["candidate_id"],
        "clear_score": 85,
        "status": "passed",
    }

    listing = client.get("/checks", params={"status": "passed"})
    assert [c["candidate_id"] for c in listing.json()["checks"]] == [check["candidate_id"]]


def test_list_includes_stats_over_all_records(client, fake_ledger):
    fake_ledger.seed("check-1", score=90)
    fake_ledger.seed("check-2")

    response = client.get("/checks", params={"status": "pending"})

    data = response.json()
    assert [c["candidate_id"] for c in data["checks"]] == ["check-2"]
    assert data["stats"] == {
        "total_checks": 2,
        "passed": 1,
        "failed": 0,
        "pending": 1,
        "avg_score": 45.0,
    }


def test_create_validates_score_range(client, as_actor, alice):
    as_actor(alice)

    response = client.post("/checks", json={"name": "Jane", "position": "Engineer", "risk_score": 150})

    assert response.status_code == 422


def test_create_rejected_by_signer(client, as_actor, alice, fake_ledger):
    as_actor(alice)
    fake_ledger.create_error = RejectedByUser("Transaction rejected by user")

    response = client.post("/checks", json={"name": "Jane", "position": "Engineer", "risk_score": 85})

    assert response.status_code == 409
    status = client.get("/transaction-status").json()
    assert status["status"] == "error"
    assert status["message"] == "Transaction rejected by user"


def test_get_unknown_check(client):
    response = client.get("/checks/check-404")

    assert response.status_code == 404


def test_my_checks_requires_wallet(client):
    assert client.get("/checks/mine").status_code == 401


def test_my_checks_lists_own_records(client, as_actor, alice, fake_ledger):
    as_actor(alice)
    fake_ledger.seed("check-1", creator="0xalice")
    fake_ledger.seed("check-2", creator="0xbob")

    response = client.get("/checks/mine")

    assert [c["candidate_id"] for c in response.json()] == ["check-1"]


def test_refresh_reports_skipped_records(client, fake_ledger):
    fake_ledger.seed("check-1")
    fake_ledger.seed("check-2")
    fake_ledger.failing_reads.add("check-1")

    response = client.post("/checks/refresh")

    data = response.json()
    assert [c["candidate_id"] for c in data["checks"]] == ["check-2"]
    assert data["skipped"] == ["check-1"]


def test_transaction_status_idle(client):
    data = client.get("/transaction-status").json()

    assert data["visible"] is False
    assert data["creating"] is False


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
