from __future__ import annotations

import pytest

from gatekeeper import dependencies
from gatekeeper.services.day_key import get_day_key, utc_now
from gatekeeper.services.liveness import ONLINE_SESSIONS_KEY, session_key
from tests.utils.fake_redis import FailingRedis

TOKEN = "0123456789abcdef0123456789abcdef"


def _today() -> str:
    return get_day_key(utc_now())


def test_enter_admits_and_sets_markers(client, fake_redis):
    resp = client.get("/v1/enter")
    assert resp.status_code == 200
    body = resp.json()
    assert body["allowed"] is True
    assert body["total"] == 1
    assert body["concurrentUsers"] == 1
    assert body["heartbeatIntervalSeconds"] == 30

    token = body["sessionToken"]
    assert resp.cookies["session_id"] == token
    assert resp.cookies["used_today"] == _today()
    assert resp.cookies["visited_date"] == _today()
    assert token in fake_redis.store[ONLINE_SESSIONS_KEY]


def test_second_enter_same_day_is_rejected(client, fake_redis):
    assert client.get("/v1/enter").json()["allowed"] is True
    writes = len(fake_redis.calls)

    resp = client.get("/v1/enter")
    assert resp.status_code == 200
    body = resp.json()
    assert body == {
        "allowed": False,
        "reason": "ONCE_PER_DAY",
        "message": body["message"],
    }
    assert body["message"]
    assert len(fake_redis.calls) == writes


def test_enter_reuses_presented_token(client):
    client.cookies.set("session_id", TOKEN)
    resp = client.post("/v1/enter")
    assert resp.json()["sessionToken"] == TOKEN
    assert "session_id" not in resp.cookies


def test_concurrency_rejection(client, monkeypatch):
    monkeypatch.setattr(dependencies.settings, "concurrent_limit", 0)
    resp = client.get("/v1/enter")
    assert resp.status_code == 200
    body = resp.json()
    assert body["reason"] == "CONCURRENCY_LIMIT"
    assert body["concurrentUsers"] == 0
    assert "total" not in body
    assert "used_today" not in resp.cookies


def test_daily_limit_rejection_marks_visit(client, fake_redis, monkeypatch):
    monkeypatch.setattr(dependencies.settings, "daily_limit", 0)
    fake_redis.store[f"daily:{_today()}"] = "1"

    resp = client.get("/v1/enter")
    body = resp.json()
    assert body["reason"] == "DAILY_LIMIT"
    assert body["total"] == 2
    assert resp.cookies["visited_date"] == _today()

    # Retrying today reads the counter without incrementing it again
    resp = client.get("/v1/enter")
    assert resp.json()["total"] == 2
    assert fake_redis.store[f"daily:{_today()}"] == "2"


def test_enter_fails_open_when_store_down(client, monkeypatch):
    monkeypatch.setattr(dependencies, "redis_client", FailingRedis())
    resp = client.get("/v1/enter")
    assert resp.status_code == 200
    body = resp.json()
    assert body["allowed"] is True
    assert body["total"] is None
    assert body["concurrentUsers"] is None
    assert len(body["sessionToken"]) == 32
    assert resp.cookies["used_today"] == _today()


def test_enter_server_error_when_token_cannot_be_minted(client, monkeypatch):
    def _broken():
        raise RuntimeError("entropy source unavailable")

    monkeypatch.setattr("gatekeeper.services.admission.mint_session_token", _broken)
    resp = client.get("/v1/enter")
    assert resp.status_code == 500
    body = resp.json()
    assert body["allowed"] is False
    assert body["reason"] == "SERVER_ERROR"
    assert "used_today" not in resp.cookies


def test_heartbeat_refreshes_liveness(client, fake_redis):
    client.cookies.set("session_id", TOKEN)
    resp = client.post("/v1/session/heartbeat")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    assert session_key(TOKEN) in fake_redis.store
    assert TOKEN in fake_redis.store[ONLINE_SESSIONS_KEY]


def test_heartbeat_accepts_header_token(client, fake_redis):
    resp = client.post("/v1/session/heartbeat", headers={"X-Session-Id": TOKEN})
    assert resp.status_code == 200
    assert TOKEN in fake_redis.store[ONLINE_SESSIONS_KEY]


def test_heartbeat_without_token(client):
    resp = client.post("/v1/session/heartbeat")
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "BAD_REQUEST"


def test_heartbeat_store_unavailable(client, monkeypatch):
    monkeypatch.setattr(dependencies, "redis_client", FailingRedis())
    resp = client.post("/v1/session/heartbeat", headers={"X-Session-Id": TOKEN})
    assert resp.status_code == 503
    assert resp.json()["detail"]["code"] == "SERVICE_UNAVAILABLE"


def test_leave_releases_slot(client, fake_redis):
    body = client.get("/v1/enter").json()
    assert client.get("/v1/stats").json()["concurrentUsers"] == 1

    resp = client.post("/v1/session/leave")
    assert resp.json() == {"ok": True}
    assert body["sessionToken"] not in fake_redis.store[ONLINE_SESSIONS_KEY]
    assert client.get("/v1/stats").json()["concurrentUsers"] == 0


def test_leave_without_token_is_noop(client, fake_redis):
    assert client.post("/v1/session/leave").json() == {"ok": True}
    assert fake_redis.calls == []


def test_stats(client, fake_redis):
    client.get("/v1/enter")
    body = client.get("/v1/stats").json()
    assert body == {
        "date": _today(),
        "total": 1,
        "concurrentUsers": 1,
        "dailyLimit": 1000,
        "concurrentLimit": 100,
    }


def test_stats_store_unavailable(client, monkeypatch):
    monkeypatch.setattr(dependencies, "redis_client", FailingRedis())
    assert client.get("/v1/stats").status_code == 503


@pytest.mark.parametrize("redis_factory, state", [(None, "up"), (FailingRedis, "down")])
def test_health(client, monkeypatch, redis_factory, state):
    if redis_factory is not None:
        monkeypatch.setattr(dependencies, "redis_client", redis_factory())
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "store": state}


def test_metrics_exposed(client):
    client.get("/v1/enter")
    client.get("/v1/enter")
    body = client.get("/metrics").text
    assert "admission_requests_total" in body
    assert 'admission_reject_total{reason="ONCE_PER_DAY"}' in body
    assert "admission_latency_seconds_bucket" in body
