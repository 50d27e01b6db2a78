"""Tests for environment-driven Settings."""

from __future__ import annotations

import pytest

from ratewarden.core.errors import InvalidConfigurationError
from ratewarden.engine.config import Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "RATEWARDEN_LOG_LEVEL",
        "RATEWARDEN_DEBUG",
        "RATEWARDEN_ADMIN_API_KEY",
        "RATEWARDEN_HOST",
        "RATEWARDEN_PORT",
        "RATEWARDEN_SWEEP_INTERVAL_SECONDS",
        "RATEWARDEN_HISTORY_RETENTION_MS",
        "RATEWARDEN_ABUSE_RETENTION_MS",
        "RATEWARDEN_CRITICAL_BLOCK_MS",
        "RATEWARDEN_RAPID_MIN_REQUESTS",
        "RATEWARDEN_RAPID_BURST_REQUESTS",
        "RATEWARDEN_FAILURE_MIN_REQUESTS",
        "RATEWARDEN_FAILURE_RATIO",
        "RATEWARDEN_MAX_USER_AGENTS",
        "RATEWARDEN_RESOURCE_MIN_REQUESTS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    s = Settings()
    assert s.log_level == "INFO"
    assert s.debug is False
    assert s.admin_api_key is None
    assert (s.host, s.port) == ("127.0.0.1", 8000)
    assert s.sweep_interval_seconds == 300.0
    assert s.history_retention_ms == 3_600_000
    assert s.abuse_retention_ms == 86_400_000
    assert s.critical_block_ms == 3_600_000


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("RATEWARDEN_LOG_LEVEL", "debug")
    monkeypatch.setenv("RATEWARDEN_DEBUG", "true")
    monkeypatch.setenv("RATEWARDEN_ADMIN_API_KEY", "s3cret")
    monkeypatch.setenv("RATEWARDEN_PORT", "9100")
    monkeypatch.setenv("RATEWARDEN_FAILURE_RATIO", "0.5")
    s = Settings()
    assert s.log_level == "DEBUG"
    assert s.debug is True
    assert s.admin_api_key == "s3cret"
    assert s.port == 9100
    assert s.detector_thresholds().failure_ratio == 0.5


def test_empty_value_uses_default(monkeypatch):
    monkeypatch.setenv("RATEWARDEN_PORT", "")
    assert Settings().port == 8000


def test_non_numeric_value_rejected(monkeypatch):
    monkeypatch.setenv("RATEWARDEN_PORT", "eighty")
    with pytest.raises(InvalidConfigurationError, match="RATEWARDEN_PORT"):
        Settings()


@pytest.mark.parametrize(
    "name",
    [
        "RATEWARDEN_SWEEP_INTERVAL_SECONDS",
        "RATEWARDEN_HISTORY_RETENTION_MS",
        "RATEWARDEN_ABUSE_RETENTION_MS",
        "RATEWARDEN_CRITICAL_BLOCK_MS",
    ],
)
def test_non_positive_horizon_rejected(monkeypatch, name):
    monkeypatch.setenv(name, "0")
    with pytest.raises(InvalidConfigurationError, match="must be positive"):
        Settings()


@pytest.mark.parametrize(
    ("name", "value", "field"),
    [
        ("RATEWARDEN_FAILURE_RATIO", "-1", "failure_ratio"),
        ("RATEWARDEN_FAILURE_RATIO", "1.5", "failure_ratio"),
        ("RATEWARDEN_RAPID_MIN_REQUESTS", "0", "rapid_min_requests"),
        ("RATEWARDEN_MAX_USER_AGENTS", "-2", "max_user_agents"),
    ],
)
def test_bad_heuristic_values_rejected_at_startup(monkeypatch, name, value, field):
    monkeypatch.setenv(name, value)
    with pytest.raises(InvalidConfigurationError, match=field):
        Settings()
