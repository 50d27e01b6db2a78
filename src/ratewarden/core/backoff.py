"""Exponential backoff with jitter, and a retry decorator built on it.

``calculate_backoff`` is a pure function: the only source of randomness is
the ``rng`` argument, so a seeded :class:`random.Random` makes it
deterministic.  ``retry_on_rate_limit`` wraps async callables and retries
them when they are denied by the limiter.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

from ratewarden.core.errors import RateLimitExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default backoff config
BASE_DELAY_MS: float = 1000.0
MAX_DELAY_MS: float = 30_000.0
JITTER_RATIO: float = 0.1
MAX_ATTEMPTS: int = 3


def calculate_backoff(
    attempt_count: int,
    base_delay_ms: float = BASE_DELAY_MS,
    *,
    rng: random.Random | None = None,
) -> float:
    """Return the delay in ms before retry number *attempt_count*.

    ``base_delay_ms * 2 ** (attempt_count - 1)``, capped at
    ``MAX_DELAY_MS``, plus up to ``JITTER_RATIO`` of that term as uniform
    jitter.  The result never exceeds ``MAX_DELAY_MS * (1 + JITTER_RATIO)``.
    """
    if attempt_count < 1:
        raise ValueError(f"attempt_count must be >= 1, got {attempt_count}")
    if base_delay_ms < 0:
        raise ValueError(f"base_delay_ms must be >= 0, got {base_delay_ms}")
    rand = rng.random() if rng is not None else random.random()
    # Cap the exponent too, 2 ** 2000 overflows a float
    exponential = min(base_delay_ms * 2 ** min(attempt_count - 1, 64), MAX_DELAY_MS)
    return exponential + rand * JITTER_RATIO * exponential


def retry_on_rate_limit(
    max_attempts: int = MAX_ATTEMPTS,
    base_delay_ms: float = BASE_DELAY_MS,
    *,
    rng: random.Random | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Callable:
    """Decorator that retries async functions denied by the rate limiter.

    Between attempts it waits for the larger of the computed backoff and the
    ``retry_after`` carried by the :class:`RateLimitExceededError`.  Any
    other exception propagates immediately.

    Usage::

        @retry_on_rate_limit(max_attempts=5)
        async def call_model(prompt: str) -> str:
            ...
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    def decorator(
        func: Callable[..., Coroutine[Any, Any, T]],
    ) -> Callable[..., Coroutine[Any, Any, T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except RateLimitExceededError as exc:
                    if attempt >= max_attempts:
                        logger.error(
                            "Rate limited in %s, giving up after %d attempts",
                            func.__name__,
                            max_attempts,
                        )
                        raise
                    delay_ms = calculate_backoff(attempt, base_delay_ms, rng=rng)
                    if exc.retry_after:
                        delay_ms = max(delay_ms, exc.retry_after * 1000.0)
                    logger.warning(
                        "Rate limited in %s (attempt %d/%d), retrying in %.2fs",
                        func.__name__,
                        attempt,
                        max_attempts,
                        delay_ms / 1000.0,
                    )
                    await sleep(delay_ms / 1000.0)
            raise AssertionError("unreachable")  # pragma: no cover

        return wrapper

    return decorator
