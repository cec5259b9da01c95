"""Dependency injection container for certverify.

Created once during application startup and stored on the Flask app
via ``app.extensions["container"]``.  Accessible from any request
context with :func:`get_container`.

Usage::

    from certverify.app.context import get_container

    c = get_container()
    result = c.engine.verify(certificate_id="C1")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import current_app

if TYPE_CHECKING:
    from pypgkit import Database

    from certverify.app.rate_limiter import InMemoryRateLimiter
    from certverify.audit.base import AuditLogStore
    from certverify.config.settings import CertVerifySettings
    from certverify.directory.base import CertificateDirectory, UniversityDirectory

log = logging.getLogger(__name__)


class Container:
    """Application-wide dependency container.

    Every collaborator can be injected; anything omitted is built from
    *settings*.  The database is only needed by the ``database``
    directory and audit backends.
    """

    def __init__(  # noqa: PLR0913
        self,
        settings: CertVerifySettings,
        db: Database | None = None,
        *,
        rate_limiter: InMemoryRateLimiter | None = None,
        certificates: CertificateDirectory | None = None,
        universities: UniversityDirectory | None = None,
        audit_store: AuditLogStore | None = None,
    ) -> None:
        from certverify.audit.log import AuditLog  # noqa: PLC0415
        from certverify.metrics.collector import MetricsCollector  # noqa: PLC0415
        from certverify.services.cleanup_worker import CleanupWorker  # noqa: PLC0415
        from certverify.services.verification import VerificationEngine  # noqa: PLC0415

        self.settings = settings
        self.db = db
        self.metrics_collector = MetricsCollector()

        # Directories
        if certificates is None or universities is None:
            from certverify.directory.registry import load_directories  # noqa: PLC0415

            loaded_certs, loaded_unis = load_directories(settings.directory, db)
            certificates = certificates or loaded_certs
            universities = universities or loaded_unis
        self.certificates: CertificateDirectory = certificates
        self.universities: UniversityDirectory = universities

        # Audit log
        if audit_store is None:
            audit_store = build_audit_store(settings, db)
        self.audit = AuditLog(
            audit_store,
            max_workers=settings.audit.max_workers,
            metrics=self.metrics_collector,
        )

        # Verification engine
        self.engine = VerificationEngine(
            self.certificates,
            self.universities,
            self.audit,
            max_bulk=settings.verification.max_bulk,
            bulk_max_workers=settings.verification.bulk_max_workers,
            metrics=self.metrics_collector,
        )

        # Cleanup worker
        self.cleanup_worker = CleanupWorker(
            audit=self.audit,
            settings=settings,
            rate_limiter=rate_limiter,
            db=db,
            metrics=self.metrics_collector,
        )

    def shutdown(self) -> None:
        """Stop background threads; pending audit writes are drained."""
        self.cleanup_worker.stop()
        self.audit.shutdown(wait=True)


def build_audit_store(
    settings: CertVerifySettings,
    db: Database | None,
) -> AuditLogStore:
    if settings.audit.backend == "database":
        if db is None:
            msg = "audit.backend 'database' requires a configured database"
            raise ValueError(msg)
        from certverify.repositories import VerificationLogRepository  # noqa: PLC0415

        return VerificationLogRepository(db)

    from certverify.audit.memory import InMemoryAuditLogStore  # noqa: PLC0415

    log.warning("Verification log is kept in memory; history is lost on restart")
    return InMemoryAuditLogStore()


def get_container() -> Container:
    """Return the :class:`Container` from the current Flask app.

    Raises :class:`RuntimeError` if ``create_app`` did not wire one.
    """
    container = current_app.extensions.get("container")
    if container is None:
        msg = "Dependency container not available -- was create_app() given a config?"
        raise RuntimeError(msg)
    return container
