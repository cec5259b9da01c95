"""Fire-and-forget front end for the verification audit log.

:meth:`AuditLog.record` hands the entry to a small thread pool and
returns immediately.  A failed write is logged and counted, never
raised: an audit-store outage must not fail a verification.

Every entry is also mirrored as one structured line on the
``certverify.audit`` logger.

Usage::

    audit = AuditLog(store, max_workers=2, metrics=collector)
    audit.record(entry)
    audit.history("C1", limit=10)
    audit.shutdown()
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING

from certverify.logging import security_events

if TYPE_CHECKING:
    from certverify.audit.base import AuditLogStore
    from certverify.metrics.collector import MetricsCollector
    from certverify.models import DailyStatistics, VerificationLogEntry

log = logging.getLogger(__name__)
audit_log = logging.getLogger("certverify.audit")


class AuditLog:
    """Records verification attempts and answers statistics queries.

    Parameters
    ----------
    store:
        Backing :class:`AuditLogStore`.
    max_workers:
        Size of the write pool.  ``0`` writes inline on the caller's
        thread (failures are still swallowed).
    metrics:
        Optional collector for write failure counters.

    """

    def __init__(
        self,
        store: AuditLogStore,
        *,
        max_workers: int = 2,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._store = store
        self._metrics = metrics
        self._executor: ThreadPoolExecutor | None = None
        if max_workers > 0:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="certverify-audit",
            )
        self._shutdown_event = threading.Event()
        self._lock = threading.Lock()
        self._write_count = 0
        self._failure_count = 0

    # -- counters ----------------------------------------------------------

    @property
    def store(self) -> AuditLogStore:
        return self._store

    @property
    def write_count(self) -> int:
        """Entries persisted successfully."""
        with self._lock:
            return self._write_count

    @property
    def failure_count(self) -> int:
        """Entries whose write raised."""
        with self._lock:
            return self._failure_count

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown_event.is_set()

    # -- writes ------------------------------------------------------------

    def record(self, entry: VerificationLogEntry) -> None:
        """Persist *entry* without blocking the caller."""
        audit_log.info(
            "verification %s %s",
            entry.verification_method.value,
            entry.result.value,
            extra={
                "audit_id": str(entry.id),
                "certificate_id": entry.certificate_id,
                "lookup_key": entry.lookup_key,
                "verification_method": entry.verification_method.value,
                "result": entry.result.value,
                "error_message": entry.error_message,
                "verifier_ip": entry.verifier_ip,
                "response_time_ms": entry.response_time_ms,
            },
        )

        if self._executor is None or self._shutdown_event.is_set():
            self._write(entry)
            return

        try:
            future: Future = self._executor.submit(self._write, entry)
        except RuntimeError:
            # Executor closed between the check and submit
            self._write(entry)
            return
        future.add_done_callback(self._on_write_done)

    def _write(self, entry: VerificationLogEntry) -> None:
        try:
            self._store.insert(entry)
        except Exception as exc:  # noqa: BLE001
            with self._lock:
                self._failure_count += 1
            if self._metrics is not None:
                self._metrics.increment("certverify_audit_write_failures_total")
            log.error(
                "Failed to persist verification log entry %s: %s",
                entry.id,
                exc,
            )
            security_events.audit_write_failed(entry.certificate_id, str(exc))
            return
        with self._lock:
            self._write_count += 1

    def _on_write_done(self, future: Future) -> None:
        # _write never raises; anything here is a cancelled future.
        if future.cancelled():
            with self._lock:
                self._failure_count += 1
            log.warning("Verification log write was cancelled")

    # -- queries -----------------------------------------------------------

    def statistics(self, since_days: int) -> list[DailyStatistics]:
        """Per-day outcome counts and mean latency, newest day first."""
        return self._store.statistics(since_days)

    def history(self, certificate_id: str, limit: int) -> list[VerificationLogEntry]:
        """Most-recent-first attempts for *certificate_id*."""
        return self._store.find_by_certificate(certificate_id, limit)

    def purge(self, older_than_days: int) -> int:
        """Delete entries older than *older_than_days*; return the count."""
        deleted = self._store.delete_older_than(older_than_days)
        if deleted:
            log.info(
                "Purged %d verification log entries older than %d days",
                deleted,
                older_than_days,
            )
        security_events.audit_purged(older_than_days, deleted)
        return deleted

    # -- lifecycle ---------------------------------------------------------

    def shutdown(self, wait: bool = True) -> None:  # noqa: FBT001, FBT002
        """Stop accepting background writes and drain the pool.

        Safe to call more than once; only the first call has effect.
        Entries recorded afterwards are written inline.
        """
        if self._shutdown_event.is_set():
            return
        self._shutdown_event.set()
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            log.info(
                "Audit writer shut down (written=%d, failed=%d)",
                self.write_count,
                self.failure_count,
            )
