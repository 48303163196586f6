"""Decision records and performance summaries."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class DecisionRecord(BaseModel):
    """One evaluated permission check.

    ``principal_id`` and ``role`` are None when the check had no principal.
    """

    model_config = ConfigDict(frozen=True)

    principal_id: str | None
    role: str | None
    resource: str
    action: str
    resource_owner_id: str | None = None
    decision: bool
    cached: bool = False
    duration_ms: float = Field(default=0.0, ge=0)
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class PerformanceReport(BaseModel):
    total_checks: int = 0
    allowed: int = 0
    denied: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    average_ms: float = 0.0
    max_ms: float = 0.0
    slow_checks: int = 0
    hook_errors: int = 0

    @property
    def cache_hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        return round(self.cache_hits / total * 100, 2) if total else 0.0

    @property
    def denial_rate(self) -> float:
        return round(self.denied / self.total_checks * 100, 2) if self.total_checks else 0.0
