"""Time sources for the limiter.

The engine never reads the system clock directly; it asks a clock for
``now()`` in milliseconds.  :class:`MonotonicClock` is the production
source (immune to wall-clock adjustments); :class:`ManualClock` is driven
explicitly by tests.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol


class Clock(Protocol):
    """Anything with a ``now()`` returning milliseconds."""

    def now(self) -> float: ...


class MonotonicClock:
    """Milliseconds from ``time.monotonic()``."""

    def now(self) -> float:
        return time.monotonic() * 1000.0


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def advance(self, ms: float) -> float:
        """Move the clock forward by *ms* and return the new time."""
        if ms < 0:
            raise ValueError(f"Cannot move a clock backwards (advance={ms})")
        with self._lock:
            self._now += ms
            return self._now

    def set(self, now: float) -> None:
        with self._lock:
            if now < self._now:
                raise ValueError(
                    f"Cannot move a clock backwards ({self._now} -> {now})"
                )
            self._now = float(now)
