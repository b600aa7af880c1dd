import time
import uuid
from datetime import datetime


def _create(client, headers, **body):
    r = client.post("/api/copier-accounts", json=body, headers=headers)
    return r


def test_list_is_ordered_by_name(client, admin_headers, viewer_headers):
    for name in ("Sim103", "Apex-2", "Sim101"):
        assert _create(client, admin_headers, account_name=name).status_code == 200
    names = [a["account_name"] for a in client.get("/api/copier-accounts", headers=viewer_headers).json()["data"]]
    assert names == ["Apex-2", "Sim101", "Sim103"]


def test_create_defaults_and_conflict(client, admin_headers):
    acct = _create(client, admin_headers, account_name="Sim101").json()["data"]
    assert acct["is_active"] is False
    assert acct["contract_size"] == 1
    assert acct["status"] == "disconnected"
    assert acct["client_name"] == "" and acct["agency_name"] == ""

    r = _create(client, admin_headers, account_name="Sim101")
    assert r.status_code == 409
    assert r.json()["account_name"] == "Sim101"


def test_patch_rederives_status_from_run_state(client, admin_headers):
    client.patch("/api/copier-state", json={"is_running": True}, headers=admin_headers)
    acct = _create(client, admin_headers, account_name="Sim101").json()["data"]
    assert acct["status"] == "disconnected"
    time.sleep(0.005)

    r = client.patch(f"/api/copier-accounts/{acct['id']}", json={"is_active": True, "contract_size": 3,
                                                                "notes": "funded"}, headers=admin_headers)
    assert r.status_code == 200
    patched = r.json()["data"]
    assert patched["is_active"] is True
    assert patched["contract_size"] == 3
    assert patched["notes"] == "funded"
    assert patched["status"] == "connected"
    assert datetime.fromisoformat(patched["updated_at"]) > datetime.fromisoformat(acct["updated_at"])


def test_patch_unknown_account(client, admin_headers):
    r = client.patch(f"/api/copier-accounts/{uuid.uuid4()}", json={"is_active": True}, headers=admin_headers)
    assert r.status_code == 404


def test_patch_rejects_telemetry_and_bad_values(client, admin_headers):
    acct = _create(client, admin_headers, account_name="Sim101").json()["data"]
    url = f"/api/copier-accounts/{acct['id']}"
    assert client.patch(url, json={"unrealized": 5.0}, headers=admin_headers).status_code == 422
    assert client.patch(url, json={"contract_size": 0}, headers=admin_headers).status_code == 422


def test_agent_cannot_patch_control_fields(client, admin_headers, agent_headers):
    acct = _create(client, admin_headers, account_name="Sim101").json()["data"]
    r = client.patch(f"/api/copier-accounts/{acct['id']}", json={"is_active": True}, headers=agent_headers)
    assert r.status_code == 403


def test_health_is_open(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["uptime"] >= 0
