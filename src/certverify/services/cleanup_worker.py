"""Cleanup worker: run periodic maintenance tasks.

Single daemon thread running each task on its own interval.
Exceptions in one task do not block others.

Tasks:

- ``audit_retention`` (cluster-wide): purge verification log entries
  older than ``audit.retention_days``.
- ``rate_limit_gc`` (process-local): drop expired rate-limit windows.

Usage::

    worker = CleanupWorker(audit=audit_log, settings=settings, db=db)
    worker.start()
    ...
    worker.stop()
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from certverify.app.rate_limiter import InMemoryRateLimiter
    from certverify.audit.log import AuditLog
    from certverify.config.settings import CertVerifySettings
    from certverify.metrics.collector import MetricsCollector

log = logging.getLogger(__name__)

_DEFAULT_LOOP_INTERVAL = 60


class _CleanupTask:
    """A named task with its own interval and last-run tracking."""

    __slots__ = (
        "_last_run",
        "cluster_wide",
        "consecutive_failures",
        "func",
        "interval_seconds",
        "name",
    )

    def __init__(
        self,
        name: str,
        interval_seconds: int,
        func: Callable[[], None],
        *,
        cluster_wide: bool = False,
    ) -> None:
        self.name = name
        self.cluster_wide = cluster_wide
        self.interval_seconds = interval_seconds
        self.func = func
        self._last_run: float | None = None
        self.consecutive_failures: int = 0

    def is_due(self, now: float) -> bool:
        if self._last_run is None:
            return True
        return (now - self._last_run) >= self.interval_seconds

    def run(self, now: float) -> None:
        self._last_run = now
        self.func()


class CleanupWorker:
    """Daemon thread that runs cleanup tasks on independent intervals.

    Tasks over shared state (the audit table) are cluster-wide: with a
    database they run inside a transaction holding
    ``pg_try_advisory_xact_lock``, so only one instance purges at a
    time.  Process-local tasks run on every instance without the lock.
    """

    # Advisory lock ID for leader election (arbitrary but stable)
    _ADVISORY_LOCK_ID = 731_004

    def __init__(
        self,
        audit: AuditLog | None = None,
        settings: CertVerifySettings | None = None,
        rate_limiter: InMemoryRateLimiter | None = None,
        db: Any = None,  # noqa: ANN401
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._tasks: list[_CleanupTask] = []
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._metrics = metrics
        self._db = db
        self._loop_interval = (
            settings.audit.cleanup_loop_interval_seconds
            if settings is not None
            else _DEFAULT_LOOP_INTERVAL
        )

        if audit is not None and settings is not None and settings.audit.retention_enabled:
            retention_days = settings.audit.retention_days
            self._tasks.append(
                _CleanupTask(
                    name="audit_retention",
                    interval_seconds=settings.audit.cleanup_interval_seconds,
                    func=lambda: self._audit_retention(audit, retention_days),
                    cluster_wide=True,
                ),
            )

        if rate_limiter is not None:
            gc_interval = 300
            if settings is not None:
                gc_interval = settings.security.rate_limits.gc_interval_seconds
            self._tasks.append(
                _CleanupTask(
                    name="rate_limit_gc",
                    interval_seconds=gc_interval,
                    func=lambda: self._rate_limit_gc(rate_limiter),
                ),
            )

    @property
    def task_names(self) -> list[str]:
        return [t.name for t in self._tasks]

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the background worker thread."""
        if not self._tasks:
            return
        if self.is_alive:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="cleanup-worker",
            daemon=True,
        )
        self._thread.start()
        log.info("Cleanup worker started (tasks: %s)", self.task_names)

    def stop(self) -> None:
        """Signal the worker to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._loop_interval + 5)
            log.info("Cleanup worker stopped")

    def run_once(self) -> None:
        """Run every due task once.

        Process-local tasks always run; cluster-wide tasks run only on
        the instance that wins the advisory lock this cycle.
        """
        now = time.monotonic()
        self._run_due([t for t in self._tasks if not t.cluster_wide], now)

        shared = [t for t in self._tasks if t.cluster_wide and t.is_due(now)]
        if not shared or self._stop_event.is_set():
            return
        if self._db is None:
            self._run_due(shared, now)
            return
        try:
            with self._db.transaction() as conn, conn.cursor() as cur:
                cur.execute(
                    "SELECT pg_try_advisory_xact_lock(%s)",
                    (self._ADVISORY_LOCK_ID,),
                )
                row = cur.fetchone()
                if not (row and row[0]):
                    log.debug("Cleanup lock held by another instance, skipping")
                    return
                self._run_due(shared, now)
        except Exception:  # noqa: BLE001
            log.warning("Advisory lock check failed, skipping this cycle", exc_info=True)

    def _run_due(self, tasks: list[_CleanupTask], now: float) -> None:
        for task in tasks:
            if self._stop_event.is_set():
                break
            if task.is_due(now):
                self._execute_task(task, now)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.run_once()
            self._stop_event.wait(timeout=self._loop_interval)

    def _execute_task(self, task: _CleanupTask, now: float) -> None:
        try:
            task.run(now)
            task.consecutive_failures = 0
            if self._metrics:
                self._metrics.increment(
                    "certverify_cleanup_runs_total",
                    labels={"task": task.name},
                )
        except Exception:  # noqa: BLE001
            task.consecutive_failures += 1
            log.exception(
                "Cleanup task '%s' failed (consecutive: %d)",
                task.name,
                task.consecutive_failures,
            )
            if self._metrics:
                self._metrics.increment(
                    "certverify_cleanup_errors_total",
                    labels={"task": task.name},
                )

    # -- Task implementations --------------------------------------------------

    @staticmethod
    def _audit_retention(audit: AuditLog, retention_days: int) -> None:
        deleted = audit.purge(retention_days)
        if deleted:
            log.info("Audit retention: deleted %d verification log entries", deleted)

    @staticmethod
    def _rate_limit_gc(limiter: InMemoryRateLimiter) -> None:
        removed = limiter.gc()
        if removed:
            log.debug("Rate limit GC: removed %d idle keys", removed)
