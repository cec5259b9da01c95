"""Pick directory implementations from configuration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pypgkit import Database

    from certverify.config.settings import DirectorySettings
    from certverify.directory.base import CertificateDirectory, UniversityDirectory

log = logging.getLogger(__name__)


def load_directories(
    settings: DirectorySettings,
    database: Database | None = None,
) -> tuple[CertificateDirectory, UniversityDirectory]:
    """Instantiate the certificate and university directories for *settings.backend*.

    Raises :class:`ValueError` for an unknown backend or a ``database``
    backend without a database.
    """
    backend = settings.backend
    if backend == "http":
        from certverify.directory.http import (  # noqa: PLC0415
            HttpCertificateDirectory,
            HttpUniversityDirectory,
        )

        log.info(
            "Using registry services: certificates=%s universities=%s",
            settings.certificate_service_url,
            settings.university_service_url,
        )
        return HttpCertificateDirectory(settings), HttpUniversityDirectory(settings)

    if backend == "database":
        if database is None:
            msg = "directory.backend 'database' requires a configured database"
            raise ValueError(msg)
        from certverify.repositories import (  # noqa: PLC0415
            CertificateRepository,
            UniversityRepository,
        )

        log.info("Using database directories")
        return CertificateRepository(database), UniversityRepository(database)

    if backend == "memory":
        from certverify.directory.memory import (  # noqa: PLC0415
            InMemoryCertificateDirectory,
            InMemoryUniversityDirectory,
            load_seed_file,
        )

        if settings.seed_file:
            return load_seed_file(settings.seed_file)
        log.warning("Using empty in-memory directories")
        return InMemoryCertificateDirectory(), InMemoryUniversityDirectory()

    msg = f"Unknown directory backend '{backend}'"
    raise ValueError(msg)
