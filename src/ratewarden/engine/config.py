"""Engine and service configuration from environment variables."""

from __future__ import annotations

import os

from ratewarden.core.errors import InvalidConfigurationError
from ratewarden.core.types import (
    ABUSE_RETENTION_MS,
    DEFAULT_BLOCK_DURATION_MS,
    HISTORY_RETENTION_MS,
)
from ratewarden.engine.detector import DetectorThresholds
from ratewarden.engine.janitor import SWEEP_INTERVAL


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise InvalidConfigurationError(f"{name} must be a number, got {raw!r}") from None


class Settings:
    """Rate limiter settings, read from environment variables with defaults."""

    def __init__(self) -> None:
        self.log_level: str = os.getenv("RATEWARDEN_LOG_LEVEL", "INFO").upper()
        self.debug: bool = os.getenv("RATEWARDEN_DEBUG", "").lower() in ("1", "true", "yes")
        self.admin_api_key: str | None = os.getenv("RATEWARDEN_ADMIN_API_KEY")
        self.host: str = os.getenv("RATEWARDEN_HOST", "127.0.0.1")
        self.port: int = _env_int("RATEWARDEN_PORT", 8000)
        # Janitor and retention horizons
        self.sweep_interval_seconds: float = _env_float(
            "RATEWARDEN_SWEEP_INTERVAL_SECONDS", SWEEP_INTERVAL
        )
        self.history_retention_ms: float = _env_float(
            "RATEWARDEN_HISTORY_RETENTION_MS", HISTORY_RETENTION_MS
        )
        self.abuse_retention_ms: float = _env_float(
            "RATEWARDEN_ABUSE_RETENTION_MS", ABUSE_RETENTION_MS
        )
        self.critical_block_ms: float = _env_float(
            "RATEWARDEN_CRITICAL_BLOCK_MS", DEFAULT_BLOCK_DURATION_MS
        )
        # Abuse heuristics
        defaults = DetectorThresholds()
        self.rapid_min_requests: int = _env_int(
            "RATEWARDEN_RAPID_MIN_REQUESTS", defaults.rapid_min_requests
        )
        self.rapid_burst_requests: int = _env_int(
            "RATEWARDEN_RAPID_BURST_REQUESTS", defaults.rapid_burst_requests
        )
        self.failure_min_requests: int = _env_int(
            "RATEWARDEN_FAILURE_MIN_REQUESTS", defaults.failure_min_requests
        )
        self.failure_ratio: float = _env_float(
            "RATEWARDEN_FAILURE_RATIO", defaults.failure_ratio
        )
        self.max_user_agents: int = _env_int(
            "RATEWARDEN_MAX_USER_AGENTS", defaults.max_user_agents
        )
        self.resource_min_requests: int = _env_int(
            "RATEWARDEN_RESOURCE_MIN_REQUESTS", defaults.resource_min_requests
        )

        for name in (
            "sweep_interval_seconds",
            "history_retention_ms",
            "abuse_retention_ms",
            "critical_block_ms",
        ):
            if getattr(self, name) <= 0:
                raise InvalidConfigurationError(
                    f"{name} must be positive, got {getattr(self, name)}"
                )
        # Fail at startup on bad heuristic values, not on first use
        self.detector_thresholds()

    def detector_thresholds(self) -> DetectorThresholds:
        """Build the detector policy from the configured heuristics."""
        return DetectorThresholds(
            rapid_min_requests=self.rapid_min_requests,
            rapid_burst_requests=self.rapid_burst_requests,
            failure_min_requests=self.failure_min_requests,
            failure_ratio=self.failure_ratio,
            max_user_agents=self.max_user_agents,
            resource_min_requests=self.resource_min_requests,
        )
