"""Liveness endpoint (no auth)."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ratewarden import __version__
from ratewarden.engine.limiter import RateLimiter
from ratewarden.service.dependencies import get_limiter
from ratewarden.service.models import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(limiter: RateLimiter = Depends(get_limiter)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        janitor_running=limiter.janitor.running,
    )
