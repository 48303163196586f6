"""Concurrent checks and invalidations against one CachedEvaluator."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from warden_core.broadcast import InvalidationBroadcaster
from warden_core.cache import PermissionCache
from warden_core.engine import CachedEvaluator
from warden_core.rbac import Action, PermissionEvaluator, PermissionRequest, Principal, Resource, Role

PRINCIPALS = [Principal(id=f"u{i}", role=role) for i, role in enumerate(list(Role) * 3)]
REQUESTS = [
    PermissionRequest.build(resource, action)
    for resource in Resource.concrete()
    for action in Action
]


def test_checks_match_direct_evaluation_under_invalidation():
    cache = PermissionCache(max_entries=64, default_ttl=300, shards=4)
    with CachedEvaluator(cache=cache, broadcaster=InvalidationBroadcaster(), owns_broadcaster=True) as engine:
        direct = PermissionEvaluator(engine.matrix)
        stop = threading.Event()
        mismatches: list[tuple] = []

        def _check(worker: int) -> int:
            done = 0
            for i in range(400):
                principal = PRINCIPALS[(worker + i) % len(PRINCIPALS)]
                request = REQUESTS[(worker * 7 + i) % len(REQUESTS)]
                if engine.check(principal, request) != direct.evaluate(principal, request):
                    mismatches.append((principal.id, request.resource, request.action))
                done += 1
            return done

        def _invalidate() -> None:
            n = 0
            while not stop.is_set():
                if n % 3 == 0:
                    engine.invalidate_user_cache(PRINCIPALS[n % len(PRINCIPALS)].id)
                elif n % 3 == 1:
                    engine.invalidate_resource_cache("products")
                else:
                    engine.invalidate_cache()
                n += 1

        invalidator = threading.Thread(target=_invalidate)
        invalidator.start()
        try:
            with ThreadPoolExecutor(max_workers=8) as pool:
                total = sum(pool.map(_check, range(8)))
        finally:
            stop.set()
            invalidator.join()

        assert total == 8 * 400
        assert mismatches == []
        assert len(engine.cache) <= 64


def test_concurrent_puts_respect_bound():
    cache = PermissionCache(max_entries=32, shards=4)
    with CachedEvaluator(cache=cache, broadcaster=InvalidationBroadcaster(), owns_broadcaster=True) as engine:
        def _fill(worker: int) -> None:
            for i in range(200):
                engine.check_permission(Principal(id=f"w{worker}-{i}", role=Role.viewer), "products", "read")

        with ThreadPoolExecutor(max_workers=6) as pool:
            list(pool.map(_fill, range(6)))

        stats = engine.cache_stats()
        assert len(engine.cache) <= 32
        assert stats.evictions >= 6 * 200 - 32
