"""Shutdown behaviour for host-shared and app-owned limiters."""

from __future__ import annotations

import random

from fastapi.testclient import TestClient

from ratewarden.core.clock import ManualClock
from ratewarden.engine.config import Settings
from ratewarden.engine.limiter import RateLimiter
from ratewarden.service.app import create_app


def _shared_limiter() -> RateLimiter:
    limiter = RateLimiter(clock=ManualClock(start=1_000_000), rng=random.Random(0))
    limiter.record_request("user:1", success=True, endpoint="api")
    limiter.block_key("ip:6.6.6.6", 60_000)
    return limiter


def test_shared_limiter_state_survives_shutdown(monkeypatch):
    monkeypatch.delenv("RATEWARDEN_ADMIN_API_KEY", raising=False)
    shared = _shared_limiter()
    app = create_app(limiter=shared, settings=Settings())
    assert app.state.owns_limiter is False

    with TestClient(app):
        assert shared.janitor.running is True

    stats = shared.get_statistics()
    assert stats.total_keys == 1
    assert stats.blocked_keys == 1
    assert shared.is_blocked("ip:6.6.6.6") is True
    assert shared.janitor.running is False


def test_host_started_janitor_keeps_running(monkeypatch):
    monkeypatch.delenv("RATEWARDEN_ADMIN_API_KEY", raising=False)
    shared = _shared_limiter()
    shared.start_background()
    try:
        with TestClient(create_app(limiter=shared, settings=Settings())):
            pass
        assert shared.janitor.running is True
        assert shared.get_statistics().total_keys == 1
    finally:
        shared.destroy()
    assert shared.janitor.running is False


def test_owned_limiter_is_reset_on_shutdown(monkeypatch):
    monkeypatch.delenv("RATEWARDEN_ADMIN_API_KEY", raising=False)
    app = create_app(settings=Settings())
    assert app.state.owns_limiter is True
    limiter: RateLimiter = app.state.limiter

    with TestClient(app):
        limiter.record_request("user:1", success=True)
        limiter.block_key("ip:6.6.6.6", 60_000)

    stats = limiter.get_statistics()
    assert stats.total_keys == 0
    assert stats.blocked_keys == 0
    assert limiter.janitor.running is False
