import time
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.ledger import local_midnight_utc


def _submit(client, headers, **overrides):
    body = {"master_account": "ACC1", "instrument": "ES", "action": "Buy", "quantity": 2,
            "fill_price": 5000.25, "execution_id": "EX1"}
    body.update(overrides)
    return client.post("/api/trade-events", json=body, headers=headers)


def test_submit_trade_event_defaults_fill_time(client, agent_headers):
    before = datetime.now(timezone.utc) - timedelta(seconds=1)
    r = _submit(client, agent_headers)
    assert r.status_code == 200
    out = r.json()
    assert out["success"] is True
    assert out["id"]

    events = client.get("/api/trade-events", headers=agent_headers).json()["data"]
    assert len(events) == 1
    ev = events[0]
    assert ev["id"] == out["id"]
    assert ev["instrument"] == "ES"
    assert ev["quantity"] == 2
    assert ev["fill_price"] == 5000.25
    assert ev["slaves_copied"] == []
    fill_time = datetime.fromisoformat(ev["fill_time"])
    if fill_time.tzinfo is None:
        fill_time = fill_time.replace(tzinfo=timezone.utc)
    assert fill_time >= before


def test_submit_accepts_agent_pascal_case(client, agent_headers):
    r = client.post("/api/trade-events", headers=agent_headers, json={
        "MasterAccount": "Sim101", "Instrument": "NQ 12-26", "Action": "Sell", "Quantity": 1,
        "FillPrice": 21000.5, "FillTime": "2026-10-19T14:30:00+00:00", "ExecutionId": "abc-1",
        "SlavesCopied": [{"Account": "Sim102", "Qty": 2, "Status": "ok"}],
    })
    assert r.status_code == 200
    ev = client.get("/api/trade-events", headers=agent_headers).json()["data"][0]
    assert ev["master_account"] == "Sim101"
    assert ev["execution_id"] == "abc-1"
    assert ev["fill_time"].startswith("2026-10-19T14:30:00")
    assert ev["slaves_copied"] == [{"account": "Sim102", "qty": 2.0, "status": "ok"}]


def test_submit_rejects_missing_fields(client, agent_headers):
    r = client.post("/api/trade-events", headers=agent_headers, json={"master_account": "ACC1"})
    assert r.status_code == 422


def test_duplicate_execution_id_is_stored(client, agent_headers):
    assert _submit(client, agent_headers).status_code == 200
    assert _submit(client, agent_headers).status_code == 200
    events = client.get("/api/trade-events", headers=agent_headers).json()["data"]
    assert [e["execution_id"] for e in events] == ["EX1", "EX1"]


def test_list_is_newest_first_and_limited(client, agent_headers):
    for i in range(3):
        _submit(client, agent_headers, execution_id=f"EX{i}")
        time.sleep(0.005)
    events = client.get("/api/trade-events", params={"limit": 2}, headers=agent_headers).json()["data"]
    assert [e["execution_id"] for e in events] == ["EX2", "EX1"]
    assert client.get("/api/trade-events", params={"limit": 0}, headers=agent_headers).status_code == 422


def test_ingest_never_touches_accounts(client, agent_headers):
    client.post("/api/copier-accounts/sync", headers=agent_headers, json={
        "master_account": "ACC1", "slave_accounts": [{"account_name": "S1", "is_active": True}], "is_running": True,
    })
    before = client.get("/api/copier-accounts", headers=agent_headers).json()["data"]
    _submit(client, agent_headers)
    after = client.get("/api/copier-accounts", headers=agent_headers).json()["data"]
    assert before == after


def test_store_failure_is_retryable(client, agent_headers, monkeypatch):
    def boom(self):
        raise OperationalError("INSERT copier_trade_events", {}, Exception("db down"))

    monkeypatch.setattr(Session, "commit", boom)
    r = _submit(client, agent_headers, execution_id="EX9")
    assert r.status_code == 503
    body = r.json()
    assert body["retryable"] is True
    assert body["execution_id"] == "EX9"
    assert body["operation"] == "submit_trade_event"


def test_stats(client, agent_headers, admin_headers):
    client.post("/api/copier-accounts/sync", headers=agent_headers, json={
        "master_account": "M1",
        "slave_accounts": [{"account_name": "S1", "is_active": True}, {"account_name": "S2", "is_active": False}],
        "is_running": True,
    })
    _submit(client, agent_headers, execution_id="EX1")
    time.sleep(0.005)
    _submit(client, agent_headers, execution_id="EX2")

    stats = client.get("/api/copier-stats", headers=admin_headers).json()
    assert stats["trades_today"] == 2
    assert stats["active_accounts"] == 2
    assert stats["total_accounts"] == 3
    assert stats["master_account"] == "M1"
    assert stats["last_trade"]["execution_id"] == "EX2"


def test_stats_empty(client, admin_headers):
    stats = client.get("/api/copier-stats", headers=admin_headers).json()
    assert stats == {"trades_today": 0, "active_accounts": 0, "total_accounts": 0,
                     "master_account": None, "last_trade": None}


def test_local_midnight_is_start_of_local_day():
    now = datetime(2026, 10, 19, 15, 45, tzinfo=timezone.utc)
    midnight = local_midnight_utc(now)
    assert midnight.tzinfo is not None
    assert timedelta(0) <= now - midnight < timedelta(days=1)
    local = midnight.astimezone()
    assert (local.hour, local.minute, local.second) == (0, 0, 0)


def test_submit_requires_execution_id(client, agent_headers):
    body = {"master_account": "ACC1", "instrument": "ES", "action": "Buy", "quantity": 2, "fill_price": 5000.25}
    assert client.post("/api/trade-events", json=body, headers=agent_headers).status_code == 422
    assert _submit(client, agent_headers, execution_id="").status_code == 422
