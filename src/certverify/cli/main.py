"""certverify command-line entry point.

Usage::

    certverify -c /etc/certverify/config.yaml
    certverify -c config.yaml --dev
    certverify -c config.yaml --validate-only
    certverify -c config.yaml serve --dev
    certverify -c config.yaml db status
    certverify -c config.yaml logs purge --days 90
    certverify -c config.yaml logs stats --days 7
    certverify -c config.yaml verify --code ABC123XY
    certverify hash record.json --expect 3f5a...
    python -m certverify -c config.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from certverify import __version__  # noqa: PLC0415

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="certverify",
        description="certverify -- academic certificate verification service",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON). Required except for hash.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        default=False,
        help="Use Flask's development server instead of gunicorn.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the verification server")
    serve_parser.add_argument("--dev", action="store_true", default=False, dest="dev")

    # db
    db_parser = subparsers.add_parser("db", help="Database management")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_sub.add_parser("status", help="Check database connectivity and tables")

    # logs
    logs_parser = subparsers.add_parser("logs", help="Verification log management")
    logs_sub = logs_parser.add_subparsers(dest="logs_command")
    purge = logs_sub.add_parser("purge", help="Delete entries older than N days")
    purge.add_argument("--days", type=int, default=None, help="Retention in days")
    stats = logs_sub.add_parser("stats", help="Print per-day statistics as JSON")
    stats.add_argument("--days", type=int, default=None, help="Window in days")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify one certificate")
    key = verify_parser.add_mutually_exclusive_group(required=True)
    key.add_argument("--id", dest="certificate_id", help="Certificate ID")
    key.add_argument("--code", dest="verification_code", help="Verification code")

    # hash
    hash_parser = subparsers.add_parser("hash", help="Compute a record's content hash")
    hash_parser.add_argument("file", help="JSON or YAML record")
    hash_parser.add_argument("--expect", default=None, metavar="HEX", help="Expected digest")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"certverify: error: {message}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # ``hash`` works on a record file only; it needs no service config
    if args.command == "hash":
        from certverify.cli.commands.hash import run_hash  # noqa: PLC0415

        sys.exit(run_hash(args))

    if not args.config:
        parser.error("the following arguments are required: -c/--config")

    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    try:
        from certverify.config import CertVerifyConfig, ConfigValidationError  # noqa: PLC0415

        config = CertVerifyConfig(config_file=str(config_path))
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    from certverify.logging import configure_logging  # noqa: PLC0415

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command
    try:
        if command == "db":
            from certverify.cli.commands.db import run_db  # noqa: PLC0415

            sys.exit(run_db(config, args))
        elif command == "logs":
            from certverify.cli.commands.logs import run_logs  # noqa: PLC0415

            sys.exit(run_logs(config, args))
        elif command == "verify":
            from certverify.cli.commands.verify import run_verify  # noqa: PLC0415

            sys.exit(run_verify(config, args))
        else:
            # No subcommand means serve
            from certverify.cli.commands.serve import run_serve  # noqa: PLC0415

            _print_settings_summary(config)
            run_serve(config, args)
    except RuntimeError as exc:
        if args.debug:
            raise
        _print_error(str(exc))
        sys.exit(1)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    lines = [
        f"certverify {_get_version()} -- configuration OK",
        f"  server:     {s.server.bind}:{s.server.port} ({s.server.workers} workers)",
        f"  api:        {s.api.base_path or '/'}verify",
        f"  directory:  {s.directory.backend}",
        f"  audit:      {s.audit.backend} (retention "
        f"{s.audit.retention_days if s.audit.retention_enabled else 'off'})",
        f"  database:   {s.database.host + '/' + s.database.database if s.database else 'none'}",
        f"  rate limit: {'on' if s.security.rate_limits.enabled else 'off'}",
    ]
    sys.stdout.write("\n".join(lines) + "\n")


if __name__ == "__main__":
    main()
