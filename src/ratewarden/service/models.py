"""Pydantic request/response models for the operator REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from ratewarden.core.types import (
    DEFAULT_BLOCK_DURATION_MS,
    AbusePattern,
    AbuseType,
    BlockEntry,
    Severity,
    Statistics,
    SweepReport,
)


class HealthResponse(BaseModel):
    status: str
    version: str
    janitor_running: bool


# ---------------------------------------------------------------------------
# Admin models
# ---------------------------------------------------------------------------


class BlockRequest(BaseModel):
    key: str = Field(min_length=1)
    duration_ms: float = Field(default=DEFAULT_BLOCK_DURATION_MS, gt=0)


class BlockedKeyEntry(BaseModel):
    key: str
    blocked_until: float

    @classmethod
    def from_entry(cls, entry: BlockEntry) -> BlockedKeyEntry:
        return cls(key=entry.key, blocked_until=entry.blocked_until)


class BlockedKeysResponse(BaseModel):
    entries: list[BlockedKeyEntry]
    count: int


class AbusePatternEntry(BaseModel):
    type: AbuseType
    severity: Severity
    description: str
    detected_at: float
    key: str
    evidence: dict[str, Any]

    @classmethod
    def from_pattern(cls, pattern: AbusePattern) -> AbusePatternEntry:
        return cls(
            type=pattern.type,
            severity=pattern.severity,
            description=pattern.description,
            detected_at=pattern.detected_at,
            key=pattern.key,
            evidence=pattern.evidence,
        )


class AbusePatternListResponse(BaseModel):
    patterns: list[AbusePatternEntry]
    count: int


class StatisticsResponse(BaseModel):
    total_keys: int
    blocked_keys: int
    abuse_patterns: int
    requests_last_hour: int

    @classmethod
    def from_statistics(cls, stats: Statistics) -> StatisticsResponse:
        return cls(
            total_keys=stats.total_keys,
            blocked_keys=stats.blocked_keys,
            abuse_patterns=stats.abuse_patterns,
            requests_last_hour=stats.requests_last_hour,
        )


class SweepResponse(BaseModel):
    keys_removed: int
    records_removed: int
    blocks_removed: int
    patterns_removed: int

    @classmethod
    def from_report(cls, report: SweepReport) -> SweepResponse:
        return cls(
            keys_removed=report.keys_removed,
            records_removed=report.records_removed,
            blocks_removed=report.blocks_removed,
            patterns_removed=report.patterns_removed,
        )
