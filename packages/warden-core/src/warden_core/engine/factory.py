"""Build a ready-to-use CachedEvaluator from configuration."""

from __future__ import annotations

import logging

from warden_core.audit.auditor import DecisionAuditor
from warden_core.broadcast.broadcaster import InvalidationBroadcaster
from warden_core.cache.permission_cache import PermissionCache
from warden_core.config.models import WardenConfig
from warden_core.engine.cached import CachedEvaluator
from warden_core.engine.ownership import OwnershipResolver
from warden_core.interfaces.transport import InvalidationTransport
from warden_core.plugins.loader import PluginLoader

logger = logging.getLogger(__name__)


def build_broadcaster(
    config: WardenConfig, transport: InvalidationTransport | None = None
) -> InvalidationBroadcaster:
    """One broadcaster per process. Starts the listener when ``broadcast.listen`` is set."""
    if transport is None:
        transport = PluginLoader(config).build_transport()
    broadcaster = InvalidationBroadcaster(transport)
    if config.broadcast.listen:
        broadcaster.start(config.broadcast.poll_interval)
    return broadcaster


def build_engine(
    config: WardenConfig | None = None,
    broadcaster: InvalidationBroadcaster | None = None,
    transport: InvalidationTransport | None = None,
) -> CachedEvaluator:
    """Wire matrix, cache, broadcaster, auditor and ownership from a WardenConfig.

    Pass ``broadcaster`` to share one between several evaluators; otherwise a
    new one is built (from ``transport`` or the configured plugin) and the
    returned evaluator closes it on :meth:`CachedEvaluator.close`.
    """
    config = config if config is not None else WardenConfig()

    cache = PermissionCache(
        max_entries=config.cache.max_entries,
        default_ttl=config.cache.ttl_seconds,
        shards=config.cache.shards,
    )
    if config.cache.enabled and config.cache.sweep_interval:
        cache.start_sweeper(config.cache.sweep_interval)

    owns_broadcaster = broadcaster is None
    if broadcaster is None:
        broadcaster = build_broadcaster(config, transport)

    auditor = None
    if config.audit.enabled:
        auditor = DecisionAuditor(slow_threshold_ms=config.audit.slow_threshold_ms)

    engine = CachedEvaluator(
        matrix=config.build_matrix(),
        cache=cache,
        broadcaster=broadcaster,
        auditor=auditor,
        ownership=OwnershipResolver(config.ownership.owner_fields),
        cache_enabled=config.cache.enabled,
        owns_broadcaster=owns_broadcaster,
    )
    logger.debug(
        "Built permission engine (cache=%s, max_entries=%d, ttl=%.0fs, audit=%s)",
        config.cache.enabled, config.cache.max_entries, config.cache.ttl_seconds, config.audit.enabled,
    )
    return engine
