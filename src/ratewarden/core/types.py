"""Core types, constants and category defaults for the rate limiter.

All instants are floats in milliseconds on the limiter's clock timeline;
durations are milliseconds except ``retry_after``, which is whole seconds.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ratewarden.core.errors import InvalidConfigurationError

# Retention horizons (ms)
HISTORY_RETENTION_MS = 3_600_000  # 1 hour
ABUSE_RETENTION_MS = 86_400_000  # 24 hours

# Default manual / critical block duration (ms)
DEFAULT_BLOCK_DURATION_MS = 3_600_000

UNKNOWN_ENDPOINT = "unknown"


def retry_after_seconds(duration_ms: float) -> int:
    """Convert a millisecond wait into whole seconds, rounding up."""
    return max(0, math.ceil(duration_ms / 1000))


def _is_positive(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


class Severity(str, Enum):
    """Abuse pattern severity.

    Using ``str, Enum`` so that ``Severity.HIGH == "high"`` is True.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AbuseType(str, Enum):
    """Kinds of heuristic abuse signal."""

    RAPID_REQUESTS = "rapid_requests"
    FAILED_REQUESTS = "failed_requests"
    SUSPICIOUS_PATTERN = "suspicious_pattern"
    RESOURCE_EXHAUSTION = "resource_exhaustion"


@dataclass(frozen=True)
class RequestRecord:
    """One recorded request outcome for a key.

    ``pending`` marks a provisional record reserved by an atomic admission
    that has not been settled yet; pending records always count toward quota.
    """

    timestamp: float
    success: bool
    endpoint: str = UNKNOWN_ENDPOINT
    user_agent: str | None = None
    source_address: str | None = None
    pending: bool = False


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-call quota definition.

    Invalid values are rejected on construction, so any config that reaches
    the limiter is known to be well-formed.
    """

    max_requests: int
    window_ms: float
    block_duration_ms: float | None = None
    skip_successful: bool = False
    skip_failed: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.max_requests, bool) or not isinstance(self.max_requests, int):
            raise InvalidConfigurationError(
                f"max_requests must be an integer, got {self.max_requests!r}"
            )
        if self.max_requests <= 0:
            raise InvalidConfigurationError(
                f"max_requests must be positive, got {self.max_requests}"
            )
        if not _is_positive(self.window_ms):
            raise InvalidConfigurationError(
                f"window_ms must be positive, got {self.window_ms!r}"
            )
        if self.block_duration_ms is not None and not _is_positive(self.block_duration_ms):
            raise InvalidConfigurationError(
                f"block_duration_ms must be positive when set, got {self.block_duration_ms!r}"
            )

    def counts(self, record: RequestRecord) -> bool:
        """Return True if *record* counts toward this quota."""
        if record.pending:
            return True
        if self.skip_successful and record.success:
            return False
        if self.skip_failed and not record.success:
            return False
        return True


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate limit check.  Computed fresh, never stored."""

    allowed: bool
    remaining: int
    reset_time: float
    retry_after: int | None = None


@dataclass(frozen=True)
class BlockEntry:
    """An explicit denial of *key* until ``blocked_until``."""

    key: str
    blocked_until: float


@dataclass(frozen=True)
class AbusePattern:
    """A heuristic abuse signal raised against *key*."""

    type: AbuseType
    severity: Severity
    description: str
    detected_at: float
    key: str
    evidence: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Statistics:
    """Snapshot of engine-wide counters."""

    total_keys: int
    blocked_keys: int
    abuse_patterns: int
    requests_last_hour: int


@dataclass(frozen=True)
class SweepReport:
    """What a single janitor sweep removed."""

    keys_removed: int = 0
    records_removed: int = 0
    blocks_removed: int = 0
    patterns_removed: int = 0

    @property
    def total(self) -> int:
        return (
            self.keys_removed
            + self.records_removed
            + self.blocks_removed
            + self.patterns_removed
        )


# Default configurations for the built-in request categories
DEFAULT_CONFIGS: dict[str, RateLimitConfig] = {
    "api": RateLimitConfig(max_requests=100, window_ms=60_000),
    "ai_inference": RateLimitConfig(max_requests=20, window_ms=60_000),
    "file_upload": RateLimitConfig(max_requests=10, window_ms=300_000),
    "search": RateLimitConfig(max_requests=50, window_ms=60_000),
    # 5 attempts per 5 min, then locked out for 15 min
    "auth": RateLimitConfig(
        max_requests=5, window_ms=300_000, block_duration_ms=900_000
    ),
}

# Endpoint name recorded for each category
CATEGORY_ENDPOINTS: dict[str, str] = {
    "api": "api",
    "ai_inference": "ai-inference",
    "file_upload": "file-upload",
    "search": "search",
    "auth": "auth",
}
