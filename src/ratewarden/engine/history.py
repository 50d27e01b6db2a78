"""Per-key request history and sliding-window counting.

``RequestHistoryStore`` keeps an append-only, chronological list of
:class:`RequestRecord` per key.  Reads hand out tuple snapshots and never
evict; bulk eviction only happens in :meth:`RequestHistoryStore.prune`,
which the janitor calls.

``WindowCounter`` turns a key's history into a :class:`RateLimitResult` for
a given :class:`RateLimitConfig`.

Neither class locks on its own: the owning ``RateLimiter`` serialises
access with its engine lock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ratewarden.core.types import (
    HISTORY_RETENTION_MS,
    RateLimitConfig,
    RateLimitResult,
    RequestRecord,
    retry_after_seconds,
)


@dataclass
class RequestHistoryStore:
    """In-memory per-key request log with a bounded retention horizon."""

    retention_ms: float = HISTORY_RETENTION_MS
    _history: dict[str, list[RequestRecord]] = field(default_factory=dict, repr=False)

    def append(self, key: str, record: RequestRecord) -> tuple[RequestRecord, ...]:
        """Append *record* to *key*'s history and return the new snapshot."""
        bucket = self._history.setdefault(key, [])
        bucket.append(record)
        return tuple(bucket)

    def snapshot(self, key: str) -> tuple[RequestRecord, ...]:
        """Return an immutable copy of *key*'s history (empty if unknown)."""
        return tuple(self._history.get(key, ()))

    def replace(self, key: str, old: RequestRecord, new: RequestRecord) -> bool:
        """Swap *old* for *new* in place.  Returns False if *old* is gone.

        Matches by identity: two records with equal fields are still
        distinct reservations.
        """
        bucket = self._history.get(key)
        if not bucket:
            return False
        for index in range(len(bucket) - 1, -1, -1):
            if bucket[index] is old:
                bucket[index] = new
                return True
        return False

    def count_since(self, cutoff: float) -> int:
        """Return the number of records, across all keys, newer than *cutoff*."""
        return sum(
            1
            for bucket in self._history.values()
            for record in bucket
            if record.timestamp > cutoff
        )

    def prune(self, now: float) -> tuple[int, int]:
        """Drop records outside the retention horizon (prevents memory leak).

        Keys left with no records are removed entirely.
        Returns ``(keys_removed, records_removed)``.
        """
        cutoff = now - self.retention_ms
        keys_removed = 0
        records_removed = 0
        for key in list(self._history):
            bucket = self._history[key]
            kept = [record for record in bucket if record.timestamp > cutoff]
            records_removed += len(bucket) - len(kept)
            if kept:
                self._history[key] = kept
            else:
                del self._history[key]
                keys_removed += 1
        return keys_removed, records_removed

    def clear(self) -> None:
        self._history.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._history

    def __len__(self) -> int:
        """Return the number of tracked keys (for monitoring)."""
        return len(self._history)


def count_in_window(
    records: Iterable[RequestRecord], config: RateLimitConfig, window_start: float
) -> int:
    """Count records newer than *window_start* that *config* counts."""
    return sum(
        1
        for record in records
        if record.timestamp > window_start and config.counts(record)
    )


class WindowCounter:
    """Sliding-window quota evaluation over a :class:`RequestHistoryStore`."""

    def __init__(self, store: RequestHistoryStore) -> None:
        self._store = store

    def count(self, key: str, config: RateLimitConfig, now: float) -> int:
        """Return how many of *key*'s records count toward *config* at *now*."""
        window_start = now - config.window_ms
        return count_in_window(self._store.snapshot(key), config, window_start)

    def evaluate(self, key: str, config: RateLimitConfig, now: float) -> RateLimitResult:
        """Return the allow/deny decision for one more request from *key*.

        Denial carries ``retry_after = ceil(window_ms / 1000)``.  This method
        has no side effects; blocking on exhaustion is the caller's job.
        """
        window_start = now - config.window_ms
        current = self.count(key, config, now)
        remaining = max(0, config.max_requests - current)
        reset_time = window_start + config.window_ms
        if current >= config.max_requests:
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=reset_time,
                retry_after=retry_after_seconds(config.window_ms),
            )
        return RateLimitResult(allowed=True, remaining=remaining, reset_time=reset_time)
