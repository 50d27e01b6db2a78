"""ratewarden -- in-process rate limiting and abuse detection.

Top-level convenience re-exports::

    from ratewarden import RateLimiter, RateLimitConfig
    from ratewarden.core import ManualClock  # clocks, errors, backoff
"""

__version__ = "0.1.0"

from ratewarden.core import (
    AbusePattern,
    AbuseType,
    BlockEntry,
    InvalidConfigurationError,
    ManualClock,
    MonotonicClock,
    RateLimitConfig,
    RateLimitExceededError,
    RateLimitResult,
    RateWardenError,
    Severity,
    Statistics,
    calculate_backoff,
)
from ratewarden.engine import Admission, DetectorThresholds, RateLimiter, Settings

__all__ = [
    "__version__",
    "AbusePattern",
    "AbuseType",
    "Admission",
    "BlockEntry",
    "DetectorThresholds",
    "InvalidConfigurationError",
    "ManualClock",
    "MonotonicClock",
    "RateLimitConfig",
    "RateLimitExceededError",
    "RateLimitResult",
    "RateLimiter",
    "RateWardenError",
    "Settings",
    "Severity",
    "Statistics",
    "calculate_backoff",
]
