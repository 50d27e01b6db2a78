"""Shared fixtures for the operator service tests."""

from __future__ import annotations

import random

import pytest
from fastapi import Depends, HTTPException
from fastapi.testclient import TestClient

from ratewarden.core.clock import ManualClock
from ratewarden.core.errors import RateLimitExceededError
from ratewarden.engine.config import Settings
from ratewarden.engine.limiter import RateLimiter
from ratewarden.service.app import create_app
from ratewarden.service.dependencies import rate_limit

ADMIN_KEY = "test-admin-key-secret"


@pytest.fixture()
def service_clock() -> ManualClock:
    return ManualClock(start=1_000_000)


@pytest.fixture()
def service_limiter(service_clock) -> RateLimiter:
    return RateLimiter(clock=service_clock, rng=random.Random(0))


def _build_app(monkeypatch, limiter, admin_key):
    if admin_key is None:
        monkeypatch.delenv("RATEWARDEN_ADMIN_API_KEY", raising=False)
    else:
        monkeypatch.setenv("RATEWARDEN_ADMIN_API_KEY", admin_key)
    app = create_app(limiter=limiter, settings=Settings())

    # Host routes guarded by the rate limit dependency
    @app.post("/login", dependencies=[Depends(rate_limit("auth"))])
    async def login(password: str = "") -> dict:
        if password != "hunter2":
            raise HTTPException(status_code=401, detail="Bad credentials")
        return {"status": "ok"}

    @app.get("/search")
    async def search(quota=Depends(rate_limit("search"))) -> dict:
        return {"remaining": quota.remaining}

    @app.get("/misconfigured", dependencies=[Depends(rate_limit("carrier_pigeon"))])
    async def misconfigured() -> dict:
        return {}

    @app.get("/upstream")
    async def upstream() -> dict:
        raise RateLimitExceededError(7)

    return app


@pytest.fixture()
def app(monkeypatch, service_limiter):
    """App with the admin API key configured."""
    return _build_app(monkeypatch, service_limiter, ADMIN_KEY)


@pytest.fixture()
def client(app):
    """TestClient with lifespan triggered (janitor running)."""
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def admin_headers() -> dict:
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture()
def no_key_client(monkeypatch, service_limiter):
    """TestClient for an app WITHOUT an admin key configured."""
    with TestClient(_build_app(monkeypatch, service_limiter, None)) as c:
        yield c
