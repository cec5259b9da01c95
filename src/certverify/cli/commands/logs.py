"""Verification log subcommands: ``purge`` and ``stats``."""

from __future__ import annotations

import sys

from certverify.api.serializers import serialize_statistics
from certverify.cli.commands._common import open_database, write_json


def run_logs(config, args) -> int:
    """Handle logs subcommands; return the process exit code."""
    settings = config.settings
    if settings.audit.backend != "database":
        sys.stderr.write("logs commands need audit.backend 'database'\n")
        return 1

    from certverify.app.context import build_audit_store  # noqa: PLC0415

    store = build_audit_store(settings, open_database(config))

    if args.logs_command == "purge":
        days = args.days if args.days is not None else settings.audit.retention_days
        if days < 1:
            sys.stderr.write("--days must be at least 1\n")
            return 1
        deleted = store.delete_older_than(days)
        sys.stdout.write(f"Deleted {deleted} verification log entries older than {days} days\n")
        return 0

    if args.logs_command == "stats":
        limits = settings.verification
        days = args.days if args.days is not None else limits.statistics_default_days
        days = max(1, min(days, limits.statistics_max_days))
        write_json(serialize_statistics(days, store.statistics(days)))
        return 0

    sys.stderr.write("usage: certverify logs {purge,stats} [--days N]\n")
    return 1
