"""ratewarden exception hierarchy.

All engine-specific exceptions inherit from :class:`RateWardenError`.
A denied ``check_rate_limit`` is a normal return value, not an exception;
:class:`RateLimitExceededError` is only raised where a call has to be
short-circuited (rate-limited function wrappers, retry helpers).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ratewarden.core.types import RateLimitResult


class RateWardenError(Exception):
    """Base exception for all ratewarden errors."""


class InvalidConfigurationError(RateWardenError, ValueError):
    """Raised when a limit, duration, category or setting is invalid."""


class RateLimitExceededError(RateWardenError):
    """Raised when a guarded call is denied by the limiter.

    ``retry_after`` is the number of whole seconds the caller should wait;
    ``result`` is the :class:`RateLimitResult` that caused the denial.
    """

    def __init__(
        self,
        retry_after: int | None,
        result: RateLimitResult | None = None,
        message: str | None = None,
    ) -> None:
        self.retry_after = retry_after
        self.result = result
        if message is None:
            message = f"Rate limit exceeded. Try again in {retry_after} seconds."
        super().__init__(message)
