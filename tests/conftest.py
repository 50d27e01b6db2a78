"""Shared test fixtures for ratewarden tests."""

from __future__ import annotations

import random

import pytest

from ratewarden.core.clock import ManualClock
from ratewarden.core.types import RateLimitConfig
from ratewarden.engine.limiter import RateLimiter


@pytest.fixture()
def clock() -> ManualClock:
    """A manual clock starting at t=0 ms."""
    return ManualClock()


@pytest.fixture()
def limiter(clock):
    """A limiter on the manual clock with seeded jitter; destroyed after the test."""
    rl = RateLimiter(clock=clock, rng=random.Random(1234))
    yield rl
    rl.destroy()


@pytest.fixture()
def five_per_minute() -> RateLimitConfig:
    return RateLimitConfig(max_requests=5, window_ms=60_000)
