"""Decision auditing: counters, latency tracking, and pluggable hooks."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from warden_core.audit.models import DecisionRecord, PerformanceReport

logger = logging.getLogger(__name__)

AuditHook = Callable[[DecisionRecord], None]


class DecisionAuditor:
    """Collects every decision the cached evaluator makes.

    Denials are logged at DEBUG, checks slower than ``slow_threshold_ms`` at
    WARNING. Hooks receive each :class:`DecisionRecord`; a failing hook is
    logged and counted, never propagated.
    """

    def __init__(self, slow_threshold_ms: float = 200.0, hooks: Iterable[AuditHook] = ()) -> None:
        self.slow_threshold_ms = slow_threshold_ms
        self._hooks: list[AuditHook] = list(hooks)
        self._lock = threading.Lock()
        self._report = PerformanceReport()
        self._total_ms = 0.0

    def add_hook(self, hook: AuditHook) -> None:
        with self._lock:
            self._hooks.append(hook)

    def record(self, record: DecisionRecord) -> None:
        slow = record.duration_ms > self.slow_threshold_ms
        with self._lock:
            r = self._report
            r.total_checks += 1
            if record.decision:
                r.allowed += 1
            else:
                r.denied += 1
            if record.cached:
                r.cache_hits += 1
            else:
                r.cache_misses += 1
            self._total_ms += record.duration_ms
            r.average_ms = self._total_ms / r.total_checks
            r.max_ms = max(r.max_ms, record.duration_ms)
            if slow:
                r.slow_checks += 1
            hooks = list(self._hooks)

        if not record.decision:
            logger.debug(
                "Denied %s (%s) %s:%s owner=%s",
                record.principal_id, record.role, record.resource, record.action, record.resource_owner_id,
            )
        if slow:
            logger.warning(
                "Slow permission check %.2fms for %s:%s (threshold %.0fms)",
                record.duration_ms, record.resource, record.action, self.slow_threshold_ms,
            )

        for hook in hooks:
            try:
                hook(record)
            except Exception:
                logger.exception("Audit hook failed")
                with self._lock:
                    self._report.hook_errors += 1

    def report(self) -> PerformanceReport:
        with self._lock:
            return self._report.model_copy()

    def reset(self) -> None:
        with self._lock:
            self._report = PerformanceReport()
            self._total_ms = 0.0
