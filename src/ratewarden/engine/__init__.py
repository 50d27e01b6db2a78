"""ratewarden engine -- history, blocking, detection, janitor and the facade."""

from ratewarden.engine.blocklist import BlockRegistry
from ratewarden.engine.config import Settings
from ratewarden.engine.detector import (
    RESOURCE_INTENSIVE_ENDPOINTS,
    AbuseDetector,
    AbuseLog,
    DetectorThresholds,
)
from ratewarden.engine.history import RequestHistoryStore, WindowCounter, count_in_window
from ratewarden.engine.janitor import SWEEP_INTERVAL, Janitor
from ratewarden.engine.limiter import Admission, RateLimiter

__all__ = [
    "RESOURCE_INTENSIVE_ENDPOINTS",
    "SWEEP_INTERVAL",
    "AbuseDetector",
    "AbuseLog",
    "Admission",
    "BlockRegistry",
    "DetectorThresholds",
    "Janitor",
    "RateLimiter",
    "RequestHistoryStore",
    "Settings",
    "WindowCounter",
    "count_in_window",
]
