"""Background sweep that evicts stale limiter state.

Runs a sweep callable on a fixed interval, either as an asyncio task
(:meth:`Janitor.start`, for services with an event loop) or on a daemon
thread (:meth:`Janitor.start_thread`, for synchronous and threaded callers).
The sweep itself (history, blocks, abuse log) lives on ``RateLimiter.sweep``
so it runs under the engine lock; the janitor only owns the timer.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable

from ratewarden.core.types import SweepReport

logger = logging.getLogger(__name__)

SWEEP_INTERVAL: float = 300.0  # seconds between sweeps


class Janitor:
    """Periodically invokes *sweep* until stopped.

    Parameters
    ----------
    sweep:
        Zero-argument callable performing one sweep and returning a
        :class:`SweepReport`.
    interval:
        Seconds between sweeps (default ``SWEEP_INTERVAL``).
    """

    def __init__(
        self,
        sweep: Callable[[], SweepReport],
        interval: float = SWEEP_INTERVAL,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Janitor interval must be positive, got {interval}")
        self._sweep = sweep
        self._interval = interval
        self._task: asyncio.Task | None = None
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        if self._task is not None and not self._task.done():
            return True
        return self._thread is not None and self._thread.is_alive()

    # -- public lifecycle --------------------------------------------------

    async def start(self) -> None:
        """Start the background sweep loop as a task (no-op if already running)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._sweep_loop())

    def start_thread(self) -> None:
        """Start the sweep loop on a daemon thread (no-op if already running).

        Needs no event loop, so plain synchronous programs get eviction too.
        """
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._thread_loop, name="ratewarden-janitor", daemon=True
        )
        self._thread.start()

    async def stop(self) -> None:
        """Cancel the background sweep loop and wait for clean shutdown."""
        self._stop_thread()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def cancel(self) -> None:
        """Stop without awaiting; safe to call from any thread."""
        self._stop_thread()
        task, self._task = self._task, None
        if task is None or task.done():
            return
        loop = task.get_loop()
        if not loop.is_closed():
            # Task.cancel is not thread-safe; hand it to the task's own loop
            loop.call_soon_threadsafe(task.cancel)

    # -- background loops --------------------------------------------------

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._run_sweep()

    def _thread_loop(self) -> None:
        # Event.wait returns True once stop is requested
        while not self._stop_event.wait(self._interval):
            self._run_sweep()

    def _stop_thread(self) -> None:
        thread, self._thread = self._thread, None
        if thread is None:
            return
        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join()

    def _run_sweep(self) -> None:
        try:
            report = self._sweep()
        except Exception:
            logger.exception("Error in rate limiter sweep")
            return
        if report.total:
            logger.info(
                "Swept %d keys, %d records, %d blocks, %d abuse patterns",
                report.keys_removed,
                report.records_removed,
                report.blocks_removed,
                report.patterns_removed,
            )
        else:
            logger.debug("Rate limiter sweep found nothing to remove")
