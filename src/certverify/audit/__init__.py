"""Verification audit log.

Public API::

    from certverify.audit import AuditLog, InMemoryAuditLogStore

    audit = AuditLog(InMemoryAuditLogStore(), max_workers=2)
    audit.record(entry)            # fire-and-forget
    audit.statistics(since_days=30)
"""

from certverify.audit.base import AuditLogStore
from certverify.audit.log import AuditLog
from certverify.audit.memory import InMemoryAuditLogStore

__all__ = ["AuditLog", "AuditLogStore", "InMemoryAuditLogStore"]
