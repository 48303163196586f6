"""Tests for build_engine / build_broadcaster."""

from __future__ import annotations

from unittest.mock import MagicMock

from warden_core.audit import DecisionAuditor
from warden_core.broadcast import InvalidationBroadcaster
from warden_core.config.models import AuditConfig, BroadcastConfig, CacheConfig, OwnershipConfig, WardenConfig
from warden_core.engine import CachedEvaluator, build_broadcaster, build_engine
from warden_core.rbac import Principal, Role
from warden_lite.transport.sqlite_transport import SQLiteTransport


def _quiet(**overrides) -> WardenConfig:
    """Config whose broadcaster does not start a listener thread."""
    return WardenConfig(broadcast=BroadcastConfig(listen=False), **overrides)


class TestBuildEngine:
    def test_defaults(self):
        engine = build_engine(_quiet())
        try:
            assert isinstance(engine, CachedEvaluator)
            assert engine.cache.max_entries == 5000
            assert engine.cache.default_ttl == 300
            assert engine.auditor is None
            assert engine.cache_enabled is True
        finally:
            engine.close()

    def test_no_config(self):
        engine = build_engine()
        try:
            assert engine.broadcaster.listening
        finally:
            engine.close()
        assert not engine.broadcaster.listening

    def test_cache_settings(self):
        cfg = _quiet(cache=CacheConfig(max_entries=10, ttl_seconds=5, shards=2))
        with build_engine(cfg) as engine:
            assert engine.cache.max_entries == 10
            assert engine.cache.default_ttl == 5

    def test_cache_disabled(self):
        with build_engine(_quiet(cache=CacheConfig(enabled=False))) as engine:
            engine.check_permission(Principal(id="u1", role=Role.viewer), "products", "read")
            assert len(engine.cache) == 0

    def test_sweeper_started_and_stopped(self):
        engine = build_engine(_quiet(cache=CacheConfig(sweep_interval=30)))
        assert engine.cache._sweeper is not None
        engine.close()
        assert engine.cache._sweeper is None

    def test_audit_enabled(self):
        with build_engine(_quiet(audit=AuditConfig(enabled=True, slow_threshold_ms=10))) as engine:
            assert isinstance(engine.auditor, DecisionAuditor)
            assert engine.auditor.slow_threshold_ms == 10

    def test_custom_roles(self):
        with build_engine(_quiet(roles={"viewer": ["orders:read"]})) as engine:
            viewer = Principal(id="u1", role=Role.viewer)
            assert engine.check_permission(viewer, "orders", "read")
            assert not engine.check_permission(viewer, "products", "read")

    def test_owner_fields(self):
        with build_engine(_quiet(ownership=OwnershipConfig(owner_fields=["author"]))) as engine:
            assert engine.ownership.owner_fields == ("author",)

    def test_shared_broadcaster_not_closed(self):
        transport = MagicMock()
        shared = InvalidationBroadcaster(transport)
        a = build_engine(_quiet(), broadcaster=shared)
        b = build_engine(_quiet(), broadcaster=shared)
        assert shared.subscriber_count == 2
        a.close()
        b.close()
        transport.close.assert_not_called()

    def test_explicit_transport(self):
        transport = MagicMock()
        engine = build_engine(_quiet(), transport=transport)
        assert engine.broadcaster.transport is transport
        engine.close()
        transport.close.assert_called_once()


class TestBuildBroadcaster:
    def test_sqlite_from_config(self, tmp_path):
        cfg = WardenConfig(broadcast=BroadcastConfig(
            transport="sqlite", sqlite_path=str(tmp_path / "inv.db"), listen=False,
        ))
        with build_broadcaster(cfg) as broadcaster:
            assert isinstance(broadcaster.transport, SQLiteTransport)
            assert not broadcaster.listening

    def test_listener_started(self):
        broadcaster = build_broadcaster(WardenConfig(broadcast=BroadcastConfig(poll_interval=0.05)))
        try:
            assert broadcaster.listening
        finally:
            broadcaster.close()
