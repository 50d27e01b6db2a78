"""FastAPI dependencies that put routes behind the rate limiter.

Usage::

    from ratewarden.service.dependencies import rate_limit

    @app.post("/login", dependencies=[Depends(rate_limit("auth"))])
    async def login(...): ...

The dependency admits the request atomically, answers 429 with a
``Retry-After`` header when denied, and records the outcome after the route
returns: anything the route raises (``HTTPException`` included) counts as a
failed request, which is what drives auth lockouts and failure-ratio
detection.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Callable

from fastapi import HTTPException, Request

from ratewarden.core.types import CATEGORY_ENDPOINTS, RateLimitResult
from ratewarden.engine.limiter import RateLimiter

logger = logging.getLogger(__name__)


def get_limiter(request: Request) -> RateLimiter:
    """Return the app's :class:`RateLimiter` from ``app.state``."""
    return request.app.state.limiter


def client_key(request: Request) -> str:
    """Default key: the client IP, prefixed so keys of different kinds never clash."""
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def rate_limit(
    category: str,
    key_func: Callable[[Request], str] = client_key,
) -> Callable[[Request], AsyncGenerator[RateLimitResult, None]]:
    """Build a dependency enforcing *category*'s quota per ``key_func(request)``."""
    endpoint = CATEGORY_ENDPOINTS.get(category, category)

    async def dependency(request: Request) -> AsyncGenerator[RateLimitResult, None]:
        limiter = get_limiter(request)
        config = limiter.category_config(category)
        key = key_func(request)
        admission = limiter.try_acquire(
            key,
            config,
            endpoint,
            metadata={
                "user_agent": request.headers.get("user-agent"),
                "source_address": request.client.host if request.client else None,
            },
        )
        if not admission.allowed:
            retry_after = admission.result.retry_after or 1
            logger.info("Rate limited %r on %s (retry in %ds)", key, endpoint, retry_after)
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                headers={"Retry-After": str(retry_after)},
            )
        try:
            yield admission.result
        except Exception:
            limiter.settle(admission, False)
            raise
        limiter.settle(admission, True)

    return dependency
