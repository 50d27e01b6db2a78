"""Rate limiter facade: quota checks, request recording, blocking, abuse
detection and janitor wiring for one in-process engine.

Two ways to use it:

- ``check_rate_limit`` before the operation, ``record_request`` after.
  Simple, but two concurrent callers can both pass the check before either
  records (check-then-act).
- ``try_acquire`` / ``settle``.  Admission reserves a pending record under
  the same lock as the check, so concurrent callers can never over-admit.
  ``create_rate_limited_function`` and the FastAPI dependency use this path.

Every piece of mutable state (history, blocks, abuse log) is owned by one
``RateLimiter`` and guarded by its engine lock; there is no global instance.
"""

from __future__ import annotations

import functools
import inspect
import logging
import random
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Any, TypeVar

from ratewarden.core.backoff import BASE_DELAY_MS, calculate_backoff
from ratewarden.core.clock import Clock, MonotonicClock
from ratewarden.core.errors import InvalidConfigurationError, RateLimitExceededError
from ratewarden.core.types import (
    ABUSE_RETENTION_MS,
    CATEGORY_ENDPOINTS,
    DEFAULT_BLOCK_DURATION_MS,
    DEFAULT_CONFIGS,
    HISTORY_RETENTION_MS,
    UNKNOWN_ENDPOINT,
    AbusePattern,
    BlockEntry,
    RateLimitConfig,
    RateLimitResult,
    RequestRecord,
    Severity,
    Statistics,
    SweepReport,
    retry_after_seconds,
)
from ratewarden.engine.blocklist import BlockRegistry
from ratewarden.engine.config import Settings
from ratewarden.engine.detector import AbuseDetector, AbuseLog, DetectorThresholds
from ratewarden.engine.history import RequestHistoryStore, WindowCounter
from ratewarden.engine.janitor import SWEEP_INTERVAL, Janitor

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class Admission:
    """Outcome of :meth:`RateLimiter.try_acquire`.

    ``record`` is the pending reservation when admitted, ``None`` when
    denied.  Pass an admitted admission to :meth:`RateLimiter.settle` once
    the guarded operation finishes.
    """

    key: str
    result: RateLimitResult
    record: RequestRecord | None = None

    @property
    def allowed(self) -> bool:
        return self.result.allowed


class RateLimiter:
    """Per-key sliding-window rate limiter with abuse detection.

    Parameters
    ----------
    clock:
        Time source in milliseconds (default :class:`MonotonicClock`).
    thresholds:
        Abuse detection policy (default :class:`DetectorThresholds`).
    rng:
        Random source for backoff jitter.
    sweep_interval:
        Seconds between janitor sweeps.
    history_retention_ms / abuse_retention_ms:
        How long request records and abuse patterns are kept.
    critical_block_ms:
        How long a key is blocked after a critical abuse pattern.
    category_configs:
        Overrides for the built-in category quotas.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        thresholds: DetectorThresholds | None = None,
        rng: random.Random | None = None,
        sweep_interval: float = SWEEP_INTERVAL,
        history_retention_ms: float = HISTORY_RETENTION_MS,
        abuse_retention_ms: float = ABUSE_RETENTION_MS,
        critical_block_ms: float = DEFAULT_BLOCK_DURATION_MS,
        category_configs: Mapping[str, RateLimitConfig] | None = None,
    ) -> None:
        self._clock: Clock = clock or MonotonicClock()
        self._rng = rng or random.Random()
        self._lock = threading.RLock()
        self._history = RequestHistoryStore(retention_ms=history_retention_ms)
        self._counter = WindowCounter(self._history)
        self._blocks = BlockRegistry()
        self._detector = AbuseDetector(thresholds)
        self._abuse_log = AbuseLog(retention_ms=abuse_retention_ms)
        self._critical_block_ms = critical_block_ms
        self._configs: dict[str, RateLimitConfig] = dict(DEFAULT_CONFIGS)
        if category_configs:
            self._configs.update(category_configs)
        self._janitor = Janitor(self.sweep, interval=sweep_interval)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> RateLimiter:
        """Build a limiter from :class:`Settings` (environment by default)."""
        settings = settings or Settings()
        return cls(
            clock=clock,
            rng=rng,
            thresholds=settings.detector_thresholds(),
            sweep_interval=settings.sweep_interval_seconds,
            history_retention_ms=settings.history_retention_ms,
            abuse_retention_ms=settings.abuse_retention_ms,
            critical_block_ms=settings.critical_block_ms,
        )

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def janitor(self) -> Janitor:
        return self._janitor

    @property
    def thresholds(self) -> DetectorThresholds:
        return self._detector.thresholds

    # ------------------------------------------------------------------
    # Quota checks
    # ------------------------------------------------------------------

    def check_rate_limit(
        self, key: str, config: RateLimitConfig, endpoint: str = UNKNOWN_ENDPOINT
    ) -> RateLimitResult:
        """Return whether one more request from *key* is allowed under *config*.

        An active block denies immediately.  Exhausting the quota of a config
        with ``block_duration_ms`` blocks the key as part of this call.
        """
        with self._lock:
            return self._check_locked(key, config, endpoint, self._clock.now())

    def get_rate_limit_status(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        """Like :meth:`check_rate_limit`, but never installs a block."""
        with self._lock:
            now = self._clock.now()
            blocked = self._blocked_result(key, now)
            if blocked is not None:
                return blocked
            return self._counter.evaluate(key, config, now)

    def category_config(self, category: str) -> RateLimitConfig:
        """Return the quota for a named category (``api``, ``auth``, ...)."""
        try:
            return self._configs[category]
        except KeyError:
            raise InvalidConfigurationError(
                f"Unknown rate limit category {category!r}. "
                f"Must be one of: {sorted(self._configs)}"
            ) from None

    def check_category(self, category: str, key: str) -> RateLimitResult:
        """Check *key* against a named category's default quota."""
        config = self.category_config(category)
        return self.check_rate_limit(key, config, CATEGORY_ENDPOINTS.get(category, category))

    def check_api_rate_limit(self, key: str) -> RateLimitResult:
        return self.check_category("api", key)

    def check_ai_inference_rate_limit(self, key: str) -> RateLimitResult:
        return self.check_category("ai_inference", key)

    def check_file_upload_rate_limit(self, key: str) -> RateLimitResult:
        return self.check_category("file_upload", key)

    def check_search_rate_limit(self, key: str) -> RateLimitResult:
        return self.check_category("search", key)

    def check_auth_rate_limit(self, key: str) -> RateLimitResult:
        return self.check_category("auth", key)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_request(
        self,
        key: str,
        success: bool,
        endpoint: str = UNKNOWN_ENDPOINT,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """Record the outcome of a request from *key* and run abuse detection.

        *metadata* may carry ``user_agent`` and ``source_address``.  Detection
        failures are logged and never reach the caller.
        """
        user_agent, source_address = _split_metadata(metadata)
        with self._lock:
            now = self._clock.now()
            record = RequestRecord(
                timestamp=now,
                success=bool(success),
                endpoint=endpoint,
                user_agent=user_agent,
                source_address=source_address,
            )
            snapshot = self._history.append(key, record)
        self._detect(key, snapshot, endpoint, now)

    # ------------------------------------------------------------------
    # Atomic admission
    # ------------------------------------------------------------------

    def try_acquire(
        self,
        key: str,
        config: RateLimitConfig,
        endpoint: str = UNKNOWN_ENDPOINT,
        metadata: Mapping[str, Any] | None = None,
    ) -> Admission:
        """Check *key* and, if allowed, reserve a pending record atomically.

        The pending record counts toward every quota (whatever the skip
        flags) until :meth:`settle` replaces it with the real outcome.
        """
        user_agent, source_address = _split_metadata(metadata)
        with self._lock:
            now = self._clock.now()
            result = self._check_locked(key, config, endpoint, now)
            if not result.allowed:
                return Admission(key=key, result=result)
            record = RequestRecord(
                timestamp=now,
                success=True,
                endpoint=endpoint,
                user_agent=user_agent,
                source_address=source_address,
                pending=True,
            )
            self._history.append(key, record)
        return Admission(
            key=key,
            result=replace(result, remaining=result.remaining - 1),
            record=record,
        )

    def settle(self, admission: Admission, success: bool) -> None:
        """Replace *admission*'s pending record with its final outcome.

        Settling twice, or after the record was swept or reset, is a no-op.
        """
        if admission.record is None:
            raise ValueError("Cannot settle a denied admission")
        pending = admission.record
        settled = replace(pending, success=bool(success), pending=False)
        with self._lock:
            now = self._clock.now()
            if not self._history.replace(admission.key, pending, settled):
                logger.debug("Admission for %r already settled or swept", admission.key)
                return
            snapshot = self._history.snapshot(admission.key)
        self._detect(admission.key, snapshot, pending.endpoint, now)

    def create_rate_limited_function(
        self,
        fn: F,
        key: str,
        config: RateLimitConfig,
        endpoint: str = UNKNOWN_ENDPOINT,
    ) -> F:
        """Wrap *fn* so each call is admitted, then recorded by outcome.

        Denied calls raise :class:`RateLimitExceededError` without calling
        *fn*.  A call that raises is recorded as a failure and re-raised.
        Coroutine functions get an async wrapper.
        """
        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                admission = self._admit_or_raise(key, config, endpoint)
                try:
                    result = await fn(*args, **kwargs)
                except BaseException:
                    self.settle(admission, False)
                    raise
                self.settle(admission, True)
                return result

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            admission = self._admit_or_raise(key, config, endpoint)
            try:
                result = fn(*args, **kwargs)
            except BaseException:
                self.settle(admission, False)
                raise
            self.settle(admission, True)
            return result

        return wrapper  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Blocking
    # ------------------------------------------------------------------

    def block_key(self, key: str, duration_ms: float = DEFAULT_BLOCK_DURATION_MS) -> None:
        """Block *key* for *duration_ms*, replacing any existing block."""
        if duration_ms <= 0:
            raise InvalidConfigurationError(
                f"Block duration must be positive, got {duration_ms}"
            )
        with self._lock:
            self._blocks.block(key, self._clock.now() + duration_ms, reason="manual")

    def unblock_key(self, key: str) -> bool:
        """Lift *key*'s block.  Returns True if one existed."""
        with self._lock:
            return self._blocks.unblock(key)

    def is_blocked(self, key: str) -> bool:
        with self._lock:
            return self._blocks.is_blocked(key, self._clock.now())

    def get_blocked_keys(self) -> list[BlockEntry]:
        """Return every block that has not expired yet."""
        with self._lock:
            return self._blocks.active(self._clock.now())

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_abuse_patterns(self, severity: Severity | str | None = None) -> list[AbusePattern]:
        with self._lock:
            return self._abuse_log.patterns(severity)

    def get_statistics(self) -> Statistics:
        with self._lock:
            now = self._clock.now()
            return Statistics(
                total_keys=len(self._history),
                blocked_keys=len(self._blocks.active(now)),
                abuse_patterns=len(self._abuse_log),
                requests_last_hour=self._history.count_since(now - HISTORY_RETENTION_MS),
            )

    def calculate_backoff(self, attempt_count: int, base_delay_ms: float = BASE_DELAY_MS) -> float:
        """Exponential backoff with jitter drawn from this limiter's rng."""
        return calculate_backoff(attempt_count, base_delay_ms, rng=self._rng)

    # ------------------------------------------------------------------
    # Maintenance and lifecycle
    # ------------------------------------------------------------------

    def sweep(self) -> SweepReport:
        """Evict stale history, expired blocks and old abuse patterns."""
        with self._lock:
            now = self._clock.now()
            keys_removed, records_removed = self._history.prune(now)
            blocks_removed = self._blocks.purge_expired(now)
            patterns_removed = self._abuse_log.purge(now)
        return SweepReport(
            keys_removed=keys_removed,
            records_removed=records_removed,
            blocks_removed=blocks_removed,
            patterns_removed=patterns_removed,
        )

    async def start(self) -> None:
        """Start the janitor's periodic sweep (needs a running event loop)."""
        await self._janitor.start()

    def start_background(self) -> None:
        """Start the janitor on a daemon thread, for code without an event loop."""
        self._janitor.start_thread()

    async def aclose(self) -> None:
        """Stop the janitor, wait for it, and clear all state."""
        await self._janitor.stop()
        self.reset()

    def reset(self) -> None:
        """Clear all history, blocks and abuse patterns."""
        with self._lock:
            self._history.clear()
            self._blocks.clear()
            self._abuse_log.clear()

    def destroy(self) -> None:
        """Stop the janitor (task or thread) and clear all state.

        Safe to call from any thread.
        """
        self._janitor.cancel()
        self.reset()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _blocked_result(self, key: str, now: float) -> RateLimitResult | None:
        until = self._blocks.blocked_until(key, now)
        if until is None:
            return None
        return RateLimitResult(
            allowed=False,
            remaining=0,
            reset_time=until,
            retry_after=retry_after_seconds(until - now),
        )

    def _check_locked(
        self, key: str, config: RateLimitConfig, endpoint: str, now: float
    ) -> RateLimitResult:
        blocked = self._blocked_result(key, now)
        if blocked is not None:
            logger.debug("Denied %r on %s: key is blocked", key, endpoint)
            return blocked
        result = self._counter.evaluate(key, config, now)
        if not result.allowed:
            logger.debug("Denied %r on %s: quota of %d exhausted", key, endpoint, config.max_requests)
            if config.block_duration_ms is not None:
                self._blocks.block(
                    key,
                    now + config.block_duration_ms,
                    reason=f"quota exhausted on {endpoint}",
                )
        return result

    def _admit_or_raise(self, key: str, config: RateLimitConfig, endpoint: str) -> Admission:
        admission = self.try_acquire(key, config, endpoint)
        if not admission.allowed:
            raise RateLimitExceededError(admission.result.retry_after, admission.result)
        return admission

    def _detect(
        self, key: str, snapshot: tuple[RequestRecord, ...], endpoint: str, now: float
    ) -> None:
        """Run abuse detection on *snapshot*; never raises."""
        try:
            patterns = self._detector.evaluate(key, snapshot, endpoint, now)
        except Exception:
            logger.exception("Abuse detection failed for key %r", key)
            return
        if not patterns:
            return
        with self._lock:
            for pattern in patterns:
                self._abuse_log.append(pattern)
                if pattern.severity is Severity.CRITICAL:
                    logger.warning(
                        "Auto-blocking %r for %.0fms after critical %s pattern",
                        pattern.key,
                        self._critical_block_ms,
                        pattern.type.value,
                    )
                    self._blocks.block(
                        pattern.key,
                        now + self._critical_block_ms,
                        reason=f"critical {pattern.type.value}",
                    )


def _split_metadata(metadata: Mapping[str, Any] | None) -> tuple[str | None, str | None]:
    if not metadata:
        return None, None
    return metadata.get("user_agent"), metadata.get("source_address")
