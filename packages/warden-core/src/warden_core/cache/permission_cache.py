"""Bounded, time-expiring, thread-safe store of permission decisions."""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from warden_core.broadcast.events import InvalidationEvent, InvalidationScope
from warden_core.cache.models import CacheEntry, CacheKey, CacheStats

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 5000
DEFAULT_TTL_SECONDS = 300.0


class _Shard:
    """One segment with its own lock and counters, ordered oldest use first."""

    __slots__ = ("lock", "entries", "hits", "misses", "evictions", "expirations", "invalidations")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entries: OrderedDict[CacheKey, CacheEntry] = OrderedDict()
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.expirations = 0
        self.invalidations = 0


class PermissionCache:
    """LRU + TTL cache exposing only get/put/invalidate.

    Keys are spread over ``shards`` independently locked segments so that
    concurrent hits on different keys do not serialize on one lock. The
    ``max_entries`` bound applies to the cache as a whole: anything that
    adds or removes an entry holds ``_bound_lock`` (always taken before a
    shard lock), and an insert past capacity evicts the least recently used
    entry across all shards. Every use stamps the entry from one global
    counter, so each shard's oldest entry is its first one.

    Expired entries are dropped lazily on lookup; :meth:`purge_expired` is an
    optional sweep.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        shards: int = 8,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        if shards <= 0:
            raise ValueError("shards must be positive")

        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self._clock = clock
        self._shards = [_Shard() for _ in range(min(shards, max_entries))]
        self._bound_lock = threading.Lock()
        self._size = 0
        self._ticks = itertools.count(1)
        self._sweep_stop: threading.Event | None = None
        self._sweeper: threading.Thread | None = None

    def _shard(self, key: CacheKey) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    # -- core operations -------------------------------------------------------

    def get(self, key: CacheKey) -> bool | None:
        """Return the cached decision, or None on a miss or an expired entry."""
        shard = self._shard(key)
        now = self._clock()
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None:
                shard.misses += 1
                return None
            if not entry.is_expired(now):
                entry.last_used = next(self._ticks)
                shard.entries.move_to_end(key)
                shard.hits += 1
                return entry.decision
            shard.misses += 1

        with self._bound_lock, shard.lock:
            entry = shard.entries.get(key)
            if entry is not None and entry.is_expired(now):
                del shard.entries[key]
                shard.expirations += 1
                self._size -= 1
        return None

    def put(self, key: CacheKey, decision: bool, ttl: float | None = None) -> None:
        """Store a decision for ``ttl`` seconds (default TTL when omitted)."""
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        shard = self._shard(key)
        expires_at = self._clock() + ttl
        with self._bound_lock:
            with shard.lock:
                added = key not in shard.entries
                if not added:
                    shard.entries.move_to_end(key)
                shard.entries[key] = CacheEntry(
                    decision=bool(decision), expires_at=expires_at, last_used=next(self._ticks)
                )
            if added:
                self._size += 1
                while self._size > self.max_entries:
                    self._evict_lru()

    def _evict_lru(self) -> None:
        # Caller holds _bound_lock, so the entry count cannot change underneath.
        victim: _Shard | None = None
        oldest = 0
        for shard in self._shards:
            with shard.lock:
                if not shard.entries:
                    continue
                first = next(iter(shard.entries.values()))
                if victim is None or first.last_used < oldest:
                    victim, oldest = shard, first.last_used
        with victim.lock:
            victim.entries.popitem(last=False)
            victim.evictions += 1
        self._size -= 1

    def invalidate(self, event: InvalidationEvent) -> int:
        """Remove every entry the event covers. Returns the number removed."""
        removed = 0
        with self._bound_lock:
            for shard in self._shards:
                with shard.lock:
                    if event.scope is InvalidationScope.all:
                        count = len(shard.entries)
                        shard.entries.clear()
                    else:
                        stale = [k for k in shard.entries if _covers(event, k)]
                        for k in stale:
                            del shard.entries[k]
                        count = len(stale)
                    shard.invalidations += count
                    removed += count
            self._size -= removed

        logger.debug("Invalidated %d cache entries (%s %s)", removed, event.scope.value, event.target_id or "*")
        return removed

    # -- maintenance -----------------------------------------------------------

    def purge_expired(self) -> int:
        """Drop every expired entry now instead of waiting for a lookup."""
        now = self._clock()
        purged = 0
        with self._bound_lock:
            for shard in self._shards:
                with shard.lock:
                    expired = [k for k, e in shard.entries.items() if e.is_expired(now)]
                    for k in expired:
                        del shard.entries[k]
                    shard.expirations += len(expired)
                    purged += len(expired)
            self._size -= purged
        return purged

    def start_sweeper(self, interval: float) -> None:
        """Run :meth:`purge_expired` every ``interval`` seconds on a daemon thread."""
        if self._sweeper is not None:
            return
        if interval <= 0:
            raise ValueError("sweep interval must be positive")
        self._sweep_stop = threading.Event()
        self._sweeper = threading.Thread(
            target=self._sweep, args=(self._sweep_stop, interval), name="warden-cache-sweeper", daemon=True
        )
        self._sweeper.start()

    def _sweep(self, stop: threading.Event, interval: float) -> None:
        while not stop.wait(interval):
            purged = self.purge_expired()
            if purged:
                logger.debug("Swept %d expired cache entries", purged)

    def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweep_stop.set()
        self._sweeper.join(timeout=5)
        self._sweeper = None
        self._sweep_stop = None

    def clear(self) -> None:
        with self._bound_lock:
            for shard in self._shards:
                with shard.lock:
                    shard.entries.clear()
            self._size = 0

    def stats(self) -> CacheStats:
        totals = CacheStats(max_entries=self.max_entries)
        for shard in self._shards:
            with shard.lock:
                totals.size += len(shard.entries)
                totals.hits += shard.hits
                totals.misses += shard.misses
                totals.evictions += shard.evictions
                totals.expirations += shard.expirations
                totals.invalidations += shard.invalidations
        return totals

    def __len__(self) -> int:
        with self._bound_lock:
            return self._size

    def __contains__(self, key: CacheKey) -> bool:
        shard = self._shard(key)
        now = self._clock()
        with shard.lock:
            entry = shard.entries.get(key)
            return entry is not None and not entry.is_expired(now)


def _covers(event: InvalidationEvent, key: CacheKey) -> bool:
    if event.scope is InvalidationScope.user:
        return key.principal_id == event.target_id
    if event.scope is InvalidationScope.resource:
        return key.references(event.target_id)
    return True
