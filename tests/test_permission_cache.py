"""Tests for PermissionCache: LRU, TTL, invalidation, and stats."""

from __future__ import annotations

import time

import pytest

from warden_core.broadcast import InvalidationEvent
from warden_core.cache import CacheKey, PermissionCache
from warden_core.rbac import PermissionRequest, Principal, Role


def _key(user: str = "u1", resource: str = "products", action: str = "read", owner: str | None = None) -> CacheKey:
    return CacheKey(principal_id=user, role="viewer", resource=resource, action=action, owner_id=owner)


# -- Keys ---------------------------------------------------------------------


class TestCacheKey:
    def test_for_request_without_owner(self):
        p = Principal(id="u1", role=Role.editor)
        key = CacheKey.for_request(p, PermissionRequest.build("products", "read"))
        assert key.owner_id is None
        assert key.role == "editor"

    def test_owner_distinguishes_keys(self):
        p = Principal(id="u1", role=Role.editor)
        a = CacheKey.for_request(p, PermissionRequest.build("profile", "update", "u1"))
        b = CacheKey.for_request(p, PermissionRequest.build("profile", "update", "u2"))
        assert a != b

    def test_role_distinguishes_keys(self):
        req = PermissionRequest.build("products", "update")
        a = CacheKey.for_request(Principal(id="u1", role=Role.viewer), req)
        b = CacheKey.for_request(Principal(id="u1", role=Role.editor), req)
        assert a != b

    def test_references(self):
        key = _key(resource="orders", owner="u7")
        assert key.references("orders")
        assert key.references("u7")
        assert not key.references("products")

    def test_str(self):
        assert str(_key()) == "u1:viewer:products:read:*"

    def test_str_escapes_separators(self):
        assert str(_key(user="a:b", owner="*")) == "a%3Ab:viewer:products:read:%2A"

    def test_star_owner_is_not_a_capability_check(self):
        p = Principal(id="*", role=Role.viewer)
        instance = CacheKey.for_request(p, PermissionRequest.build("profile", "update", "*"))
        capability = CacheKey.for_request(p, PermissionRequest.build("profile", "update"))
        assert instance != capability


# -- Construction -------------------------------------------------------------


class TestConstruction:
    @pytest.mark.parametrize("kwargs", [{"max_entries": 0}, {"default_ttl": 0}, {"shards": 0}])
    def test_rejects_non_positive(self, kwargs):
        with pytest.raises(ValueError):
            PermissionCache(**kwargs)

    def test_more_shards_than_entries(self):
        cache = PermissionCache(max_entries=2, shards=8)
        for i in range(5):
            cache.put(_key(user=f"u{i}"), True)
        assert len(cache) <= 2


# -- get / put ----------------------------------------------------------------


class TestGetPut:
    def test_miss_returns_none(self, cache):
        assert cache.get(_key()) is None

    def test_put_then_get(self, cache):
        cache.put(_key(), True)
        assert cache.get(_key()) is True

    def test_false_is_a_hit(self, cache):
        cache.put(_key(), False)
        assert cache.get(_key()) is False

    def test_overwrite(self, cache):
        cache.put(_key(), True)
        cache.put(_key(), False)
        assert cache.get(_key()) is False
        assert len(cache) == 1

    def test_invalid_ttl(self, cache):
        with pytest.raises(ValueError):
            cache.put(_key(), True, ttl=0)

    def test_contains(self, cache):
        cache.put(_key(), True)
        assert _key() in cache
        assert _key(user="other") not in cache


# -- TTL ----------------------------------------------------------------------


class TestExpiry:
    def test_entry_expires(self, cache, clock):
        cache.put(_key(), True)
        clock.advance(299.9)
        assert cache.get(_key()) is True
        clock.advance(0.1)
        assert cache.get(_key()) is None

    def test_custom_ttl(self, cache, clock):
        cache.put(_key(), True, ttl=5)
        clock.advance(5)
        assert cache.get(_key()) is None

    def test_expired_counted(self, cache, clock):
        cache.put(_key(), True)
        clock.advance(301)
        cache.get(_key())
        stats = cache.stats()
        assert stats.expirations == 1
        assert stats.misses == 1
        assert stats.size == 0

    def test_purge_expired(self, cache, clock):
        cache.put(_key(user="a"), True, ttl=10)
        cache.put(_key(user="b"), True, ttl=100)
        clock.advance(50)
        assert cache.purge_expired() == 1
        assert len(cache) == 1

    def test_expired_not_contained(self, cache, clock):
        cache.put(_key(), True, ttl=1)
        clock.advance(2)
        assert _key() not in cache


# -- LRU ----------------------------------------------------------------------


class TestEviction:
    def test_capacity_bound(self, clock):
        cache = PermissionCache(max_entries=10, shards=1, clock=clock)
        for i in range(25):
            cache.put(_key(user=f"u{i}"), True)
        assert len(cache) == 10
        assert cache.stats().evictions == 15

    def test_least_recently_used_evicted(self, clock):
        cache = PermissionCache(max_entries=3, shards=1, clock=clock)
        cache.put(_key(user="a"), True)
        cache.put(_key(user="b"), True)
        cache.put(_key(user="c"), True)
        cache.get(_key(user="a"))
        cache.put(_key(user="d"), True)
        assert _key(user="b") not in cache
        assert _key(user="a") in cache

    def test_sharded_capacity_bound(self, clock):
        cache = PermissionCache(max_entries=50, shards=8, clock=clock)
        for i in range(500):
            cache.put(_key(user=f"u{i}"), True)
        assert len(cache) == 50
        assert cache.stats().size == 50
        assert cache.stats().evictions == 450

    def test_sharded_cache_holds_max_entries(self, clock):
        cache = PermissionCache(max_entries=100, shards=8, clock=clock)
        keys = [_key(user=f"u{i}") for i in range(100)]
        for key in keys:
            cache.put(key, True)
        assert len(cache) == 100
        assert cache.stats().evictions == 0
        assert all(key in cache for key in keys)

    def test_sharded_eviction_is_global_lru(self, clock):
        cache = PermissionCache(max_entries=20, shards=8, clock=clock)
        keys = [_key(user=f"u{i}") for i in range(20)]
        for key in keys:
            cache.put(key, True)
        for key in keys[1:]:
            cache.get(key)
        cache.put(_key(user="newcomer"), True)
        assert keys[0] not in cache
        assert all(key in cache for key in keys[1:])

    def test_overwrite_does_not_evict(self, clock):
        cache = PermissionCache(max_entries=2, shards=2, clock=clock)
        cache.put(_key(user="a"), True)
        cache.put(_key(user="b"), True)
        cache.put(_key(user="a"), False)
        assert len(cache) == 2
        assert cache.get(_key(user="a")) is False

    def test_expired_lookup_frees_capacity(self, clock):
        cache = PermissionCache(max_entries=2, shards=2, clock=clock)
        cache.put(_key(user="a"), True, ttl=1)
        cache.put(_key(user="b"), True, ttl=100)
        clock.advance(5)
        assert cache.get(_key(user="a")) is None
        assert len(cache) == 1
        cache.put(_key(user="c"), True)
        assert cache.stats().evictions == 0


# -- Invalidation -------------------------------------------------------------


class TestInvalidate:
    def test_all(self, cache):
        for i in range(5):
            cache.put(_key(user=f"u{i}"), True)
        assert cache.invalidate(InvalidationEvent.all()) == 5
        assert len(cache) == 0

    def test_user(self, cache):
        cache.put(_key(user="u1"), True)
        cache.put(_key(user="u1", action="update"), False)
        cache.put(_key(user="u2"), True)
        assert cache.invalidate(InvalidationEvent.user("u1")) == 2
        assert _key(user="u2") in cache

    def test_resource_by_type(self, cache):
        cache.put(_key(resource="orders"), True)
        cache.put(_key(resource="products"), True)
        cache.invalidate(InvalidationEvent.resource("orders"))
        assert _key(resource="orders") not in cache
        assert _key(resource="products") in cache

    def test_resource_by_owner(self, cache):
        cache.put(_key(resource="profile", action="update", owner="u9"), True)
        cache.put(_key(resource="profile", action="update", owner="u8"), True)
        cache.invalidate(InvalidationEvent.resource("u9"))
        assert _key(resource="profile", action="update", owner="u9") not in cache
        assert _key(resource="profile", action="update", owner="u8") in cache

    def test_invalidate_empty_cache(self, cache):
        assert cache.invalidate(InvalidationEvent.user("nobody")) == 0

    def test_clear(self, cache):
        cache.put(_key(), True)
        cache.clear()
        assert len(cache) == 0


# -- Stats --------------------------------------------------------------------


class TestStats:
    def test_hit_rate(self, cache):
        cache.put(_key(), True)
        cache.get(_key())
        cache.get(_key())
        cache.get(_key(user="missing"))
        stats = cache.stats()
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(66.67)
        assert stats.max_entries == 100

    def test_hit_rate_zero_when_unused(self, cache):
        assert cache.stats().hit_rate == 0.0

    def test_invalidations_counted(self, cache):
        cache.put(_key(), True)
        cache.invalidate(InvalidationEvent.all())
        assert cache.stats().invalidations == 1


# -- Sweeper ------------------------------------------------------------------


class TestSweeper:
    def test_sweeper_purges_in_background(self):
        now = [0.0]
        cache = PermissionCache(max_entries=10, default_ttl=1, clock=lambda: now[0])
        cache.put(_key(), True)
        now[0] = 5.0
        cache.start_sweeper(0.01)
        try:
            deadline = time.monotonic() + 2
            while len(cache) and time.monotonic() < deadline:
                time.sleep(0.01)
            assert len(cache) == 0
        finally:
            cache.stop_sweeper()

    def test_invalid_interval(self, cache):
        with pytest.raises(ValueError):
            cache.start_sweeper(0)

    def test_stop_without_start(self, cache):
        cache.stop_sweeper()
