"""Storage interface for verification log entries."""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certverify.models import DailyStatistics, VerificationLogEntry


class AuditLogStore(abc.ABC):
    """Append-only store of verification attempts.

    Entries are never updated; the only deletion path is
    :meth:`delete_older_than`.
    """

    @abc.abstractmethod
    def insert(self, entry: VerificationLogEntry) -> None:
        """Persist *entry*."""

    @abc.abstractmethod
    def statistics(self, since_days: int) -> list[DailyStatistics]:
        """Per-day aggregates over the trailing *since_days*, newest day first."""

    @abc.abstractmethod
    def find_by_certificate(
        self,
        certificate_id: str,
        limit: int,
    ) -> list[VerificationLogEntry]:
        """Most recent entries for *certificate_id*, newest first."""

    @abc.abstractmethod
    def delete_older_than(self, days: int) -> int:
        """Delete entries older than *days*; return how many were removed."""
