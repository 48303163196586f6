"""Cache keys, entries, and statistics."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from pydantic import BaseModel

from warden_core.rbac.models import PermissionRequest, Principal


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Opaque composite key. Only fields the evaluator reads take part.

    ``owner_id`` is None for capability-only checks, so no real owner id can
    share a key with them.
    """

    principal_id: str
    role: str
    resource: str
    action: str
    owner_id: str | None = None

    @classmethod
    def for_request(cls, principal: Principal, request: PermissionRequest) -> CacheKey:
        return cls(
            principal_id=principal.id,
            role=principal.role.value,
            resource=request.resource,
            action=request.action,
            owner_id=request.resource_owner_id,
        )

    def references(self, resource_id: str) -> bool:
        return self.resource == resource_id or self.owner_id == resource_id

    def __str__(self) -> str:
        # Percent-encoded parts keep ":" unambiguous; "*" marks a missing owner.
        owner = "*" if self.owner_id is None else quote(self.owner_id, safe="")
        parts = (quote(p, safe="") for p in (self.principal_id, self.role, self.resource, self.action))
        return ":".join((*parts, owner))


@dataclass(slots=True)
class CacheEntry:
    decision: bool
    expires_at: float
    last_used: int = 0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheStats(BaseModel):
    """Counters since creation (or the last reset)."""

    size: int = 0
    max_entries: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    invalidations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return round(self.hits / total * 100, 2) if total else 0.0
