"""Operator API for blocks, abuse patterns and engine statistics.

All endpoints require ``X-Admin-Key`` header authentication with constant-time
comparison via ``hmac.compare_digest()``.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ratewarden.core.types import Severity
from ratewarden.engine.limiter import RateLimiter
from ratewarden.service.dependencies import get_limiter
from ratewarden.service.models import (
    AbusePatternEntry,
    AbusePatternListResponse,
    BlockedKeyEntry,
    BlockedKeysResponse,
    BlockRequest,
    StatisticsResponse,
    SweepResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Auth dependency
# ---------------------------------------------------------------------------


async def verify_admin_key(request: Request) -> None:
    """FastAPI dependency: validate X-Admin-Key header.

    - Returns 503 if ``RATEWARDEN_ADMIN_API_KEY`` is not configured.
    - Returns 401 if the header is missing or does not match.
    """
    configured_key = request.app.state.settings.admin_api_key
    if configured_key is None:
        raise HTTPException(status_code=503, detail="Admin API not configured")

    provided_key = request.headers.get("X-Admin-Key")
    if provided_key is None or not hmac.compare_digest(provided_key, configured_key):
        raise HTTPException(status_code=401, detail="Invalid admin API key")


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


@router.get("/blocked", response_model=BlockedKeysResponse)
async def list_blocked(
    limiter: RateLimiter = Depends(get_limiter),
    _: None = Depends(verify_admin_key),
) -> BlockedKeysResponse:
    """List all active blocks."""
    entries = [BlockedKeyEntry.from_entry(e) for e in limiter.get_blocked_keys()]
    return BlockedKeysResponse(entries=entries, count=len(entries))


@router.post("/blocked", status_code=201)
async def block_key(
    body: BlockRequest,
    limiter: RateLimiter = Depends(get_limiter),
    _: None = Depends(verify_admin_key),
) -> dict:
    """Block a key for ``duration_ms``."""
    limiter.block_key(body.key, body.duration_ms)
    logger.info("Admin blocked %r for %.0fms", body.key, body.duration_ms)
    return {"key": body.key, "status": "blocked"}


@router.delete("/blocked/{key:path}")
async def unblock_key(
    key: str,
    limiter: RateLimiter = Depends(get_limiter),
    _: None = Depends(verify_admin_key),
) -> dict:
    """Lift a block."""
    if not limiter.unblock_key(key):
        raise HTTPException(status_code=404, detail="Key is not blocked")
    return {"key": key, "status": "unblocked"}


# ---------------------------------------------------------------------------
# Abuse patterns and statistics
# ---------------------------------------------------------------------------


@router.get("/abuse-patterns", response_model=AbusePatternListResponse)
async def list_abuse_patterns(
    severity: Severity | None = Query(default=None),
    limiter: RateLimiter = Depends(get_limiter),
    _: None = Depends(verify_admin_key),
) -> AbusePatternListResponse:
    """List detected abuse patterns, optionally filtered by severity."""
    patterns = [AbusePatternEntry.from_pattern(p) for p in limiter.get_abuse_patterns(severity)]
    return AbusePatternListResponse(patterns=patterns, count=len(patterns))


@router.get("/statistics", response_model=StatisticsResponse)
async def statistics(
    limiter: RateLimiter = Depends(get_limiter),
    _: None = Depends(verify_admin_key),
) -> StatisticsResponse:
    """Return engine-wide counters."""
    return StatisticsResponse.from_statistics(limiter.get_statistics())


@router.post("/sweep", response_model=SweepResponse)
async def sweep(
    limiter: RateLimiter = Depends(get_limiter),
    _: None = Depends(verify_admin_key),
) -> SweepResponse:
    """Run a janitor sweep now instead of waiting for the next interval."""
    return SweepResponse.from_report(limiter.sweep())
