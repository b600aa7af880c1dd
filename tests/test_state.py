from datetime import datetime


def test_default_state_when_uninitialised(client, agent_headers):
    r = client.get("/api/copier-state", headers=agent_headers)
    assert r.status_code == 200
    assert r.json() == {"is_running": False, "master_account": "", "updated_at": None}


def test_partial_write_merges(client, agent_headers, admin_headers):
    r = client.patch("/api/copier-state", json={"master_account": "M1"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["master_account"] == "M1"
    assert r.json()["is_running"] is False

    out = client.patch("/api/copier-state", json={"is_running": True}, headers=agent_headers).json()
    assert out["is_running"] is True
    assert out["master_account"] == "M1"
    assert out["updated_at"] is not None


def test_rewriting_same_state_is_harmless(client, agent_headers):
    body = {"is_running": True, "master_account": "M1"}
    first = client.patch("/api/copier-state", json=body, headers=agent_headers).json()
    second = client.patch("/api/copier-state", json=body, headers=agent_headers).json()
    assert (first["is_running"], first["master_account"]) == (second["is_running"], second["master_account"])
    assert datetime.fromisoformat(second["updated_at"]) >= datetime.fromisoformat(first["updated_at"])


def test_viewer_cannot_write_state(client, viewer_headers):
    r = client.patch("/api/copier-state", json={"is_running": True}, headers=viewer_headers)
    assert r.status_code == 403


def _statuses(client, headers):
    rows = client.get("/api/copier-accounts", headers=headers).json()["data"]
    return {a["account_name"]: a["status"] for a in rows}


def test_state_write_rederives_account_status(client, agent_headers, admin_headers):
    client.post("/api/copier-accounts/sync", headers=agent_headers, json={
        "master_account": "M1",
        "slave_accounts": [{"account_name": "S1", "is_active": True}, {"account_name": "S2", "is_active": False}],
        "is_running": True,
    })
    assert _statuses(client, agent_headers) == {"M1": "connected", "S1": "connected", "S2": "disconnected"}

    client.patch("/api/copier-state", json={"is_running": False}, headers=admin_headers)
    assert _statuses(client, agent_headers) == {"M1": "disconnected", "S1": "disconnected", "S2": "disconnected"}

    client.patch("/api/copier-state", json={"is_running": True}, headers=admin_headers)
    assert _statuses(client, agent_headers) == {"M1": "connected", "S1": "connected", "S2": "disconnected"}
