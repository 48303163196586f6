"""Warden Core - role-based authorization with cached decisions and cross-context invalidation."""

from warden_core.audit import DecisionAuditor, DecisionRecord, PerformanceReport
from warden_core.broadcast import InvalidationBroadcaster, InvalidationEvent, InvalidationScope
from warden_core.cache import CacheKey, CacheStats, PermissionCache
from warden_core.config import WardenConfig, load_config
from warden_core.engine import CachedEvaluator, OwnershipResolver, build_engine
from warden_core.rbac import (
    Action,
    CapabilityGrant,
    CapabilityMatrix,
    PermissionEvaluator,
    PermissionRequest,
    PermissionRequestError,
    Principal,
    Resource,
    ResourcePermissions,
    Role,
    Scope,
)

__version__ = "0.1.0"

__all__ = [
    "Action",
    "CacheKey",
    "CacheStats",
    "CachedEvaluator",
    "CapabilityGrant",
    "CapabilityMatrix",
    "DecisionAuditor",
    "DecisionRecord",
    "InvalidationBroadcaster",
    "InvalidationEvent",
    "InvalidationScope",
    "OwnershipResolver",
    "PerformanceReport",
    "PermissionCache",
    "PermissionEvaluator",
    "PermissionRequest",
    "PermissionRequestError",
    "Principal",
    "Resource",
    "ResourcePermissions",
    "Role",
    "Scope",
    "WardenConfig",
    "build_engine",
    "load_config",
]
