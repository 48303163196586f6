from .loader import DEFAULT_CONFIG_TEMPLATE, load_config
from .models import (
    AuditConfig,
    BroadcastConfig,
    CacheConfig,
    OwnershipConfig,
    WardenConfig,
)

__all__ = [
    "AuditConfig",
    "BroadcastConfig",
    "CacheConfig",
    "DEFAULT_CONFIG_TEMPLATE",
    "OwnershipConfig",
    "WardenConfig",
    "load_config",
]
