from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from warden_core.rbac.matrix import CapabilityMatrix
from warden_core.rbac.models import CapabilityGrant, Role


class CacheConfig(BaseModel):
    enabled: bool = True
    max_entries: int = Field(default=5000, gt=0)
    ttl_seconds: float = Field(default=300.0, gt=0)
    shards: int = Field(default=8, gt=0)
    sweep_interval: float | None = Field(default=None, gt=0)


class BroadcastConfig(BaseModel):
    transport: str = "memory"
    channel: str = "warden-permissions"
    poll_interval: float = Field(default=1.0, gt=0)
    listen: bool = True
    sqlite_path: str = ".warden/invalidations.db"
    project_id: str | None = None
    topic: str | None = None
    subscription: str | None = None


class AuditConfig(BaseModel):
    enabled: bool = False
    slow_threshold_ms: float = Field(default=200.0, gt=0)


class OwnershipConfig(BaseModel):
    owner_fields: list[str] = Field(default_factory=lambda: ["createdBy", "created_by", "userId", "user_id"])

    @field_validator("owner_fields")
    @classmethod
    def not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("owner_fields must name at least one field")
        return v


class WardenConfig(BaseModel):
    cache: CacheConfig = Field(default_factory=CacheConfig)
    broadcast: BroadcastConfig = Field(default_factory=BroadcastConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    ownership: OwnershipConfig = Field(default_factory=OwnershipConfig)
    # role -> ["resource:action[:scope]", ...]; replaces the built-in matrix when set
    roles: dict[Role, list[CapabilityGrant]] | None = None
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"

    @field_validator("roles", mode="before")
    @classmethod
    def parse_grants(cls, v: object) -> object:
        if not isinstance(v, dict):
            return v
        parsed = {}
        for role, grants in v.items():
            if isinstance(role, str):
                role = role.strip().lower()
            parsed[role] = [CapabilityGrant.parse(g) if isinstance(g, str) else g for g in grants or []]
        return parsed

    def build_matrix(self) -> CapabilityMatrix:
        if self.roles is None:
            return CapabilityMatrix.default()
        return CapabilityMatrix(self.roles)
