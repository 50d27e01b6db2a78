"""Heuristic abuse detection over a key's recent request history.

Four independent signals are evaluated, in order, over the last five
minutes of history each time a request is recorded:

- **rapid_requests** -- sustained volume with a dense recent burst
- **failed_requests** -- a very high failure ratio (credential stuffing,
  scanner probing)
- **suspicious_pattern** -- many distinct user agents behind one key
- **resource_exhaustion** -- hammering the expensive endpoints

Every threshold, window and severity lives in :class:`DetectorThresholds`
so the policy can be tuned without touching the mechanism.  Emitted
patterns are kept in an :class:`AbuseLog` for 24 hours.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ratewarden.core.errors import InvalidConfigurationError
from ratewarden.core.types import (
    ABUSE_RETENTION_MS,
    AbusePattern,
    AbuseType,
    RequestRecord,
    Severity,
)

logger = logging.getLogger(__name__)

RESOURCE_INTENSIVE_ENDPOINTS: tuple[str, ...] = ("ai-inference", "file-upload", "search")


@dataclass(frozen=True)
class DetectorThresholds:
    """Tunable policy for :class:`AbuseDetector`."""

    lookback_ms: float = 300_000  # 5 minutes

    # rapid_requests
    rapid_min_requests: int = 50
    rapid_burst_window_ms: float = 10_000
    rapid_burst_requests: int = 20
    rapid_severity: Severity = Severity.HIGH

    # failed_requests
    failure_min_requests: int = 10
    failure_ratio: float = 0.8
    failure_severity: Severity = Severity.MEDIUM

    # suspicious_pattern
    max_user_agents: int = 5
    user_agent_severity: Severity = Severity.MEDIUM

    # resource_exhaustion
    resource_endpoints: tuple[str, ...] = RESOURCE_INTENSIVE_ENDPOINTS
    resource_min_requests: int = 15
    resource_severity: Severity = Severity.HIGH

    def __post_init__(self) -> None:
        # Accept plain strings ("critical") wherever a Severity is expected
        for name in (
            "rapid_severity",
            "failure_severity",
            "user_agent_severity",
            "resource_severity",
        ):
            object.__setattr__(self, name, Severity(getattr(self, name)))
        object.__setattr__(self, "resource_endpoints", tuple(self.resource_endpoints))

        for name in ("lookback_ms", "rapid_burst_window_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not value > 0:
                raise InvalidConfigurationError(f"{name} must be positive, got {value!r}")
        for name in (
            "rapid_min_requests",
            "rapid_burst_requests",
            "failure_min_requests",
            "max_user_agents",
            "resource_min_requests",
        ):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidConfigurationError(
                    f"{name} must be a positive integer, got {value!r}"
                )
        if not 0 <= self.failure_ratio < 1:
            raise InvalidConfigurationError(
                f"failure_ratio must be in [0, 1), got {self.failure_ratio!r}"
            )


class AbuseDetector:
    """Evaluates request history against the heuristics in *thresholds*."""

    def __init__(self, thresholds: DetectorThresholds | None = None) -> None:
        self.thresholds = thresholds or DetectorThresholds()

    def evaluate(
        self,
        key: str,
        history: Sequence[RequestRecord],
        endpoint: str,
        now: float,
    ) -> list[AbusePattern]:
        """Return the patterns *history* triggers for *key* at *now*.

        *history* is the full, unfiltered snapshot for the key; *endpoint* is
        the endpoint of the request that was just recorded.  Pending
        admissions are skipped: only settled outcomes are judged.
        """
        t = self.thresholds
        recent = [
            r for r in history if not r.pending and r.timestamp > now - t.lookback_ms
        ]
        patterns: list[AbusePattern] = []

        # Pattern 1: rapid successive requests
        if len(recent) >= t.rapid_min_requests:
            burst = sum(1 for r in recent if r.timestamp > now - t.rapid_burst_window_ms)
            if burst >= t.rapid_burst_requests:
                patterns.append(
                    AbusePattern(
                        type=AbuseType.RAPID_REQUESTS,
                        severity=t.rapid_severity,
                        description=(
                            f"{burst} requests in {t.rapid_burst_window_ms / 1000:g} "
                            f"seconds from {key}"
                        ),
                        detected_at=now,
                        key=key,
                        evidence={
                            "requestCount": burst,
                            "timeWindow": t.rapid_burst_window_ms,
                            "endpoint": endpoint,
                        },
                    )
                )

        # Pattern 2: high failure rate
        if recent and len(recent) >= t.failure_min_requests:
            failed = sum(1 for r in recent if not r.success)
            failure_rate = failed / len(recent)
            if failure_rate > t.failure_ratio:
                patterns.append(
                    AbusePattern(
                        type=AbuseType.FAILED_REQUESTS,
                        severity=t.failure_severity,
                        description=f"High failure rate ({round(failure_rate * 100)}%) from {key}",
                        detected_at=now,
                        key=key,
                        evidence={
                            "failureRate": failure_rate,
                            "totalRequests": len(recent),
                            "failedRequests": failed,
                        },
                    )
                )

        # Pattern 3: many user agents behind one key
        user_agents = list(dict.fromkeys(r.user_agent for r in recent if r.user_agent))
        if len(user_agents) > t.max_user_agents:
            patterns.append(
                AbusePattern(
                    type=AbuseType.SUSPICIOUS_PATTERN,
                    severity=t.user_agent_severity,
                    description=f"Multiple user agents from same key: {key}",
                    detected_at=now,
                    key=key,
                    evidence={"userAgents": user_agents, "requestCount": len(recent)},
                )
            )

        # Pattern 4: resource exhaustion attempts
        if endpoint in t.resource_endpoints:
            resource_requests = sum(1 for r in recent if r.endpoint in t.resource_endpoints)
            if resource_requests >= t.resource_min_requests:
                patterns.append(
                    AbusePattern(
                        type=AbuseType.RESOURCE_EXHAUSTION,
                        severity=t.resource_severity,
                        description=f"Excessive resource-intensive requests from {key}",
                        detected_at=now,
                        key=key,
                        evidence={
                            "resourceRequests": resource_requests,
                            "endpoints": list(t.resource_endpoints),
                        },
                    )
                )

        return patterns


class AbuseLog:
    """Append-only log of detected patterns with a rolling retention window."""

    def __init__(self, retention_ms: float = ABUSE_RETENTION_MS) -> None:
        self.retention_ms = retention_ms
        self._patterns: list[AbusePattern] = []

    def append(self, pattern: AbusePattern) -> None:
        self._patterns.append(pattern)
        if pattern.severity in (Severity.HIGH, Severity.CRITICAL):
            logger.warning(
                "Abuse pattern detected: type=%s severity=%s key=%r evidence=%s",
                pattern.type.value,
                pattern.severity.value,
                pattern.key,
                pattern.evidence,
            )
        else:
            logger.info(
                "Abuse pattern detected: type=%s severity=%s key=%r",
                pattern.type.value,
                pattern.severity.value,
                pattern.key,
            )

    def patterns(self, severity: Severity | str | None = None) -> list[AbusePattern]:
        """Return a copy of the log, optionally filtered by *severity*."""
        if severity is None:
            return list(self._patterns)
        wanted = Severity(severity)
        return [p for p in self._patterns if p.severity == wanted]

    def purge(self, now: float) -> int:
        """Drop patterns older than the retention window.  Returns the count."""
        cutoff = now - self.retention_ms
        before = len(self._patterns)
        self._patterns = [p for p in self._patterns if p.detected_at > cutoff]
        return before - len(self._patterns)

    def clear(self) -> None:
        self._patterns.clear()

    def __len__(self) -> int:
        return len(self._patterns)
