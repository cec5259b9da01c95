"""Database management subcommands."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_db(config, args) -> int:
    """Handle db subcommands; return the process exit code."""
    if args.db_command == "status":
        return _db_status(config)
    sys.stderr.write("usage: certverify db status\n")
    return 1


def _db_status(config) -> int:
    """Check database connectivity and presence of the service tables."""
    from certverify.db import init_database, missing_tables  # noqa: PLC0415

    if config.settings.database is None:
        sys.stderr.write("No database section configured\n")
        return 1

    try:
        db = init_database(config.settings.database)
        db.fetch_value("SELECT 1")
        missing = missing_tables(db)
    except Exception as exc:  # noqa: BLE001
        log.debug("Database status check failed", exc_info=True)
        sys.stderr.write(f"Database: unreachable ({exc})\n")
        return 1

    sys.stdout.write("Database: connected\n")
    if missing:
        sys.stdout.write(f"Missing tables: {', '.join(missing)}\n")
        return 1
    sys.stdout.write("Schema: all tables present\n")
    return 0
