"""Process-local audit log store."""

from __future__ import annotations

import threading
from collections import defaultdict
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from certverify.audit.base import AuditLogStore
from certverify.core.types import VerificationOutcome
from certverify.models import DailyStatistics

if TYPE_CHECKING:
    from certverify.models import VerificationLogEntry


class InMemoryAuditLogStore(AuditLogStore):
    """Lock-protected list of entries with the same semantics as the
    database repository.  Contents are lost on restart.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[VerificationLogEntry] = []

    def insert(self, entry: VerificationLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def statistics(self, since_days: int) -> list[DailyStatistics]:
        cutoff = datetime.now(UTC) - timedelta(days=since_days)
        buckets: dict = defaultdict(list)
        with self._lock:
            for entry in self._entries:
                if entry.timestamp >= cutoff:
                    buckets[entry.timestamp.date()].append(entry)

        stats = []
        for day, entries in buckets.items():
            outcomes = [e.result for e in entries]
            stats.append(
                DailyStatistics(
                    day=day,
                    total=len(entries),
                    valid_count=outcomes.count(VerificationOutcome.VALID),
                    invalid_count=outcomes.count(VerificationOutcome.INVALID),
                    error_count=outcomes.count(VerificationOutcome.ERROR),
                    avg_response_time_ms=sum(e.response_time_ms for e in entries) / len(entries),
                ),
            )
        stats.sort(key=lambda s: s.day, reverse=True)
        return stats

    def find_by_certificate(
        self,
        certificate_id: str,
        limit: int,
    ) -> list[VerificationLogEntry]:
        with self._lock:
            matching = [e for e in self._entries if e.certificate_id == certificate_id]
        matching.sort(key=lambda e: e.timestamp, reverse=True)
        return matching[:limit]

    def delete_older_than(self, days: int) -> int:
        cutoff = datetime.now(UTC) - timedelta(days=days)
        with self._lock:
            before = len(self._entries)
            self._entries = [e for e in self._entries if e.timestamp >= cutoff]
            return before - len(self._entries)

    def all(self) -> list[VerificationLogEntry]:
        """Snapshot of every stored entry in insertion order."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
