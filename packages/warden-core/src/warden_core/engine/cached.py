"""The evaluator callers use: cache-first permission checks with invalidation."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, TypeVar

from warden_core.audit.auditor import DecisionAuditor
from warden_core.audit.models import DecisionRecord
from warden_core.broadcast.broadcaster import InvalidationBroadcaster, InvalidationHandler
from warden_core.broadcast.events import InvalidationEvent
from warden_core.cache.models import CacheKey, CacheStats
from warden_core.cache.permission_cache import PermissionCache
from warden_core.engine.ownership import OwnershipResolver
from warden_core.rbac.evaluator import PermissionEvaluator
from warden_core.rbac.hierarchy import has_minimum_role
from warden_core.rbac.matrix import CapabilityMatrix
from warden_core.rbac.models import (
    Action,
    BatchResult,
    PermissionRequest,
    Principal,
    Resource,
    ResourcePermissions,
    Role,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

RequestLike = PermissionRequest | Mapping[str, Any] | tuple | list


class CachedEvaluator:
    """Wraps :class:`PermissionEvaluator` with a :class:`PermissionCache`.

    Each instance owns its cache and subscribes it to the shared
    broadcaster, so invalidations published anywhere (this process or, via
    the transport, another one) reach it. Decisions depend only on the cache
    key, and inactive principals are denied before the cache is consulted.

    A failing cache never fails a check: the error is logged and the
    decision is computed directly.
    """

    def __init__(
        self,
        matrix: CapabilityMatrix | None = None,
        cache: PermissionCache | None = None,
        broadcaster: InvalidationBroadcaster | None = None,
        auditor: DecisionAuditor | None = None,
        ownership: OwnershipResolver | None = None,
        ttl: float | None = None,
        evaluator: PermissionEvaluator | None = None,
        cache_enabled: bool = True,
        owns_broadcaster: bool | None = None,
    ) -> None:
        self.evaluator = evaluator if evaluator is not None else PermissionEvaluator(matrix)
        self.cache = cache if cache is not None else PermissionCache()
        self.broadcaster = broadcaster if broadcaster is not None else InvalidationBroadcaster()
        self.auditor = auditor
        self.ownership = ownership if ownership is not None else OwnershipResolver()
        self.ttl = ttl
        self.cache_enabled = cache_enabled
        self._owns_broadcaster = broadcaster is None if owns_broadcaster is None else owns_broadcaster
        self._unsubscribe = self.broadcaster.subscribe(self._on_invalidation)

    @property
    def matrix(self) -> CapabilityMatrix:
        return self.evaluator.matrix

    def close(self) -> None:
        """Stop receiving invalidations and stop the cache sweeper.

        A shared broadcaster stays open; one this evaluator owns is closed too.
        """
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.cache.stop_sweeper()
        if self._owns_broadcaster:
            self.broadcaster.close()

    def __enter__(self) -> CachedEvaluator:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -- single checks ---------------------------------------------------------

    def check_permission(
        self,
        principal: Principal | None,
        resource: str | Resource,
        action: str | Action,
        resource_owner_id: str | None = None,
    ) -> bool:
        """Decide one request. Raises PermissionRequestError if resource or action is missing."""
        request = PermissionRequest.build(resource, action, resource_owner_id)
        return self.check(principal, request)

    def check(self, principal: Principal | None, request: PermissionRequest) -> bool:
        start = time.perf_counter()
        if principal is None or not principal.active:
            self._record(principal, request, False, False, start)
            return False

        key = CacheKey.for_request(principal, request)
        decision = self._cache_get(key)
        cached = decision is not None
        if decision is None:
            decision = self.evaluator.evaluate(principal, request)
            self._cache_put(key, decision)

        self._record(principal, request, decision, cached, start)
        return decision

    def _record(
        self, principal: Principal | None, request: PermissionRequest, decision: bool, cached: bool, start: float
    ) -> None:
        if self.auditor is None:
            return
        self.auditor.record(
            DecisionRecord(
                principal_id=principal.id if principal is not None else None,
                role=principal.role.value if principal is not None else None,
                resource=request.resource,
                action=request.action,
                resource_owner_id=request.resource_owner_id,
                decision=decision,
                cached=cached,
                duration_ms=(time.perf_counter() - start) * 1000,
            )
        )

    def can_access_own_resource(
        self,
        principal: Principal | None,
        resource: str | Resource,
        action: str | Action,
        owner_id: str | None = None,
    ) -> bool:
        """Instance check when ``owner_id`` is given, capability-only check otherwise."""
        return self.check_permission(principal, resource, action, owner_id)

    def has_minimum_role(self, principal: Principal | None, minimum: Role | str) -> bool:
        return has_minimum_role(principal, minimum)

    # -- batches ---------------------------------------------------------------

    def _coerce_all(self, requests: Iterable[RequestLike]) -> list[PermissionRequest]:
        return [PermissionRequest.coerce(r) for r in requests]

    def check_multiple_permissions(self, principal: Principal | None, requests: Iterable[RequestLike]) -> list[bool]:
        """One decision per request, in input order."""
        return [self.check(principal, r) for r in self._coerce_all(requests)]

    def has_any_permission(self, principal: Principal | None, requests: Iterable[RequestLike]) -> bool:
        """True if any request is allowed. False for an empty list."""
        return any(self.check(principal, r) for r in self._coerce_all(requests))

    def has_all_permissions(self, principal: Principal | None, requests: Iterable[RequestLike]) -> bool:
        """True if every request is allowed. True for an empty list."""
        return all(self.check(principal, r) for r in self._coerce_all(requests))

    def evaluate_batch(self, principal: Principal | None, requests: Iterable[RequestLike]) -> BatchResult:
        results = self.check_multiple_permissions(principal, requests)
        return BatchResult(results=results, has_any=any(results), has_all=all(results))

    # -- capability queries and filtering --------------------------------------

    def get_resource_permissions(self, principal: Principal | None, resource: str | Resource) -> ResourcePermissions:
        if principal is None:
            return ResourcePermissions()
        request = PermissionRequest.build(resource, Action.read)
        return self.evaluator.resource_permissions(principal, request.resource)

    def get_accessible_resources(self, principal: Principal | None) -> list[Resource]:
        """Resource types the principal can do anything with, whether scoped ``own`` or ``all``."""
        if principal is None:
            return []
        return self.evaluator.accessible_resources(principal)

    def filter_data_by_permissions(
        self,
        principal: Principal | None,
        items: Sequence[T],
        resource: str | Resource,
        action: str | Action = Action.read,
    ) -> list[T]:
        request = PermissionRequest.build(resource, action)
        if principal is None:
            return []
        return self.ownership.filter(self.matrix, principal, items, request.resource, request.action)

    # -- invalidation ----------------------------------------------------------

    def invalidate_cache(self) -> None:
        self._invalidate(InvalidationEvent.all(origin=self.broadcaster.origin))

    def invalidate_user_cache(self, user_id: str) -> None:
        self._invalidate(InvalidationEvent.user(user_id, origin=self.broadcaster.origin))

    def invalidate_resource_cache(self, resource_id: str) -> None:
        self._invalidate(InvalidationEvent.resource(resource_id, origin=self.broadcaster.origin))

    def _invalidate(self, event: InvalidationEvent) -> None:
        # Local first: this must hold even when remote propagation fails.
        self._apply(event)
        self.broadcaster.publish(event)

    def _on_invalidation(self, event: InvalidationEvent) -> None:
        self._apply(event)

    def _apply(self, event: InvalidationEvent) -> None:
        try:
            self.cache.invalidate(event)
        except Exception:
            logger.warning("Permission cache invalidation failed; clearing cache", exc_info=True)
            self.cache.clear()

    def subscribe_to_updates(self, handler: InvalidationHandler):
        """Register for invalidation events. Returns an unsubscribe function."""
        return self.broadcaster.subscribe(handler)

    # -- cache management ------------------------------------------------------

    def warm_cache(self, principals: Iterable[Principal]) -> int:
        """Precompute capability-only decisions for every resource/action pair."""
        warmed = 0
        for principal in principals:
            if not principal.active:
                continue
            for resource in Resource.concrete():
                for action in Action:
                    request = PermissionRequest(resource=resource.value, action=action.value)
                    decision = self.evaluator.evaluate(principal, request)
                    self._cache_put(CacheKey.for_request(principal, request), decision)
                    warmed += 1
        logger.info("Warmed permission cache with %d decisions", warmed)
        return warmed

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def _cache_get(self, key: CacheKey) -> bool | None:
        if not self.cache_enabled:
            return None
        try:
            return self.cache.get(key)
        except Exception:
            logger.warning("Permission cache read failed for %s; evaluating directly", key, exc_info=True)
            return None

    def _cache_put(self, key: CacheKey, decision: bool) -> None:
        if not self.cache_enabled:
            return
        try:
            self.cache.put(key, decision, self.ttl)
        except Exception:
            logger.warning("Permission cache write failed for %s", key, exc_info=True)
