"""Permission decision cache."""

from warden_core.cache.models import CacheEntry, CacheKey, CacheStats
from warden_core.cache.permission_cache import DEFAULT_MAX_ENTRIES, DEFAULT_TTL_SECONDS, PermissionCache

__all__ = [
    "CacheEntry",
    "CacheKey",
    "CacheStats",
    "DEFAULT_MAX_ENTRIES",
    "DEFAULT_TTL_SECONDS",
    "PermissionCache",
]
