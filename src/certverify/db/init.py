"""Database initialisation from certverify configuration.

Usage::

    from certverify.config import get_config
    from certverify.db.init import init_database

    init_database(get_config().settings.database)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pypgkit import Database, DatabaseConfig

if TYPE_CHECKING:
    from certverify.config.settings import DatabaseSettings

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Tables the service reads or writes; checked by ``certverify db status``.
REQUIRED_TABLES = ("universities", "certificates", "verification_logs")

log = logging.getLogger(__name__)


def _settings_to_config(settings: DatabaseSettings) -> DatabaseConfig:
    """Map certverify DatabaseSettings to PyPGKit DatabaseConfig."""
    return DatabaseConfig(
        host=settings.host,
        port=settings.port,
        database=settings.database,
        user=settings.user,
        password=settings.password,
        sslmode=settings.sslmode,
        min_connections=settings.min_connections,
        max_connections=settings.max_connections,
        connection_timeout=settings.connection_timeout,
    )


def init_database(settings: DatabaseSettings) -> Database:
    """Initialise the :class:`Database` singleton from config settings.

    If the singleton is already initialised, returns the existing
    instance.  With ``auto_setup`` the bundled ``schema.sql`` is applied.
    """
    if Database.is_initialized():
        log.debug("Database already initialised, returning existing instance")
        return Database.get_instance()

    log.info(
        "Initialising database connection: %s@%s:%s/%s",
        settings.user,
        settings.host,
        settings.port,
        settings.database,
    )

    db = Database.init(
        config=_settings_to_config(settings),
        schema_path=SCHEMA_PATH if settings.auto_setup else None,
        auto_setup=settings.auto_setup,
        interactive=False,
    )

    log.info("Database initialised successfully")
    return db


def missing_tables(db: Database) -> list[str]:
    """Return the required tables absent from the ``public`` schema."""
    present = {
        row["table_name"]
        for row in db.fetch_all(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = 'public'",
            as_dict=True,
        )
    }
    return [t for t in REQUIRED_TABLES if t not in present]
