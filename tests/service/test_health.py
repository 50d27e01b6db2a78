"""Tests for the /health endpoint."""

from __future__ import annotations

from fastapi.testclient import TestClient

from ratewarden import __version__


def test_health_reports_running_janitor(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": __version__, "janitor_running": True}


def test_health_needs_no_auth(no_key_client):
    assert no_key_client.get("/health").status_code == 200


def test_janitor_stops_on_shutdown(app, service_limiter):
    with TestClient(app):
        assert service_limiter.janitor.running is True
    assert service_limiter.janitor.running is False
