"""Decision auditing and performance reporting."""

from warden_core.audit.auditor import AuditHook, DecisionAuditor
from warden_core.audit.models import DecisionRecord, PerformanceReport

__all__ = ["AuditHook", "DecisionAuditor", "DecisionRecord", "PerformanceReport"]
