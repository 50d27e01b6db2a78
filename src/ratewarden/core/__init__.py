"""ratewarden core -- data model, errors, clocks and backoff.

Public API re-exports for ``ratewarden.core``.
"""

from ratewarden.core.types import (
    ABUSE_RETENTION_MS,
    CATEGORY_ENDPOINTS,
    DEFAULT_BLOCK_DURATION_MS,
    DEFAULT_CONFIGS,
    HISTORY_RETENTION_MS,
    UNKNOWN_ENDPOINT,
    AbusePattern,
    AbuseType,
    BlockEntry,
    RateLimitConfig,
    RateLimitResult,
    RequestRecord,
    Severity,
    Statistics,
    SweepReport,
    retry_after_seconds,
)

from ratewarden.core.errors import (
    InvalidConfigurationError,
    RateLimitExceededError,
    RateWardenError,
)

from ratewarden.core.clock import Clock, ManualClock, MonotonicClock

from ratewarden.core.backoff import calculate_backoff, retry_on_rate_limit

__all__ = [
    # Types
    "ABUSE_RETENTION_MS",
    "CATEGORY_ENDPOINTS",
    "DEFAULT_BLOCK_DURATION_MS",
    "DEFAULT_CONFIGS",
    "HISTORY_RETENTION_MS",
    "UNKNOWN_ENDPOINT",
    "AbusePattern",
    "AbuseType",
    "BlockEntry",
    "RateLimitConfig",
    "RateLimitResult",
    "RequestRecord",
    "Severity",
    "Statistics",
    "SweepReport",
    "retry_after_seconds",
    # Errors
    "InvalidConfigurationError",
    "RateLimitExceededError",
    "RateWardenError",
    # Clocks
    "Clock",
    "ManualClock",
    "MonotonicClock",
    # Backoff
    "calculate_backoff",
    "retry_on_rate_limit",
]
