"""The cached evaluator, ownership filtering, and the config-driven factory."""

from warden_core.engine.cached import CachedEvaluator
from warden_core.engine.factory import build_broadcaster, build_engine
from warden_core.engine.ownership import DEFAULT_OWNER_FIELDS, OwnershipResolver

__all__ = [
    "CachedEvaluator",
    "DEFAULT_OWNER_FIELDS",
    "OwnershipResolver",
    "build_broadcaster",
    "build_engine",
]
