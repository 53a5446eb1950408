import pytest
from fastapi.testclient import TestClient

from gatekeeper import dependencies
from gatekeeper.main import app
from gatekeeper.services.admission import AdmissionEngine
from gatekeeper.services.liveness import LivenessTracker
from gatekeeper.services.store import KVStore
from tests.utils.fake_redis import FakeRedis


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(dependencies, "redis_client", fake)
    yield fake


@pytest.fixture
def client():
    """Fresh TestClient per test so cookie jars do not leak between tests."""
    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_engine(fake_redis):
    def _make(redis=None, daily_limit=1000, concurrent_limit=100, **kwargs):
        store = KVStore(redis if redis is not None else fake_redis)
        tracker = LivenessTracker(store, ttl_s=600, stale_after_s=300)
        return AdmissionEngine(
            store,
            tracker,
            daily_limit=daily_limit,
            concurrent_limit=concurrent_limit,
            **kwargs,
        )

    return _make
