"""FastAPI application factory for the ratewarden operator service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.exceptions import HTTPException, RequestValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from ratewarden import __version__
from ratewarden.core.errors import InvalidConfigurationError, RateLimitExceededError
from ratewarden.engine.config import Settings
from ratewarden.engine.limiter import RateLimiter

logger = logging.getLogger(__name__)

# Consistent JSON error shape: {"error": "<code>", "detail": "<message>"}
_STATUS_TO_ERROR = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    422: "validation_error",
    429: "rate_limited",
    503: "service_unavailable",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Run the limiter's janitor for the lifetime of the app.

    A limiter passed in by the host is left as found on shutdown: its state
    is kept, and a janitor the host started keeps running.
    """
    limiter: RateLimiter = app.state.limiter
    started_janitor = not limiter.janitor.running
    if started_janitor:
        await limiter.start()
        logger.info(
            "Rate limiter janitor started (every %.0fs)", limiter.janitor.interval
        )

    yield

    if app.state.owns_limiter:
        await limiter.aclose()
        logger.info("Rate limiter stopped")
    elif started_janitor:
        await limiter.janitor.stop()
        logger.info("Rate limiter janitor stopped; shared limiter state kept")


def create_app(
    limiter: RateLimiter | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create the FastAPI app exposing health and operator endpoints.

    Pass *limiter* to share an engine with the host application; otherwise
    one is built from *settings* (environment by default).
    """
    settings = settings or Settings()

    # Configure logging from settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.debug:
        logging.getLogger("ratewarden").setLevel(logging.DEBUG)

    app = FastAPI(
        title="ratewarden",
        version=__version__,
        lifespan=lifespan,
    )

    # Store on app.state so lifespan, dependencies and routes can reach them
    app.state.settings = settings
    app.state.owns_limiter = limiter is None
    app.state.limiter = limiter or RateLimiter.from_settings(settings)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": _STATUS_TO_ERROR.get(exc.status_code, "error"),
                "detail": exc.detail,
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "error": "validation_error",
                "detail": str(exc),
            },
        )

    @app.exception_handler(RateLimitExceededError)
    async def rate_limited_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        retry_after = exc.retry_after or 1
        return JSONResponse(
            status_code=429,
            content={"error": "rate_limited", "detail": str(exc)},
            headers={"Retry-After": str(retry_after)},
        )

    @app.exception_handler(InvalidConfigurationError)
    async def invalid_config_handler(request: Request, exc: InvalidConfigurationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "bad_request", "detail": str(exc)},
        )

    from ratewarden.service.routes.admin import router as admin_router
    from ratewarden.service.routes.health import router as health_router

    app.include_router(admin_router)
    app.include_router(health_router)

    return app
