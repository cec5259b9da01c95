"""Logging configuration for certverify.

Console output is JSON lines (``logging.format: json``) or a single
text line per record.  Every record carries the request context
(request ID, client IP, method, path) when emitted inside a Flask
request.

The ``certverify.audit`` logger receives one record per verification
attempt from :class:`~certverify.audit.log.AuditLog`.  When
``logging.audit.file`` is set those records are also written to a
rotating file as fixed-shape JSON lines::

    {"ts": "...", "audit_id": "...", "certificate_id": "C1",
     "method": "id", "result": "valid", "latency_ms": 12,
     "verifier_ip": "203.0.113.9", "lookup_key": "C1", "error": null,
     "request_id": "..."}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certverify.config.settings import AuditLogSettings, LoggingSettings

# Request context attributes, with the value used outside a request.
_CONTEXT_DEFAULTS = {
    "request_id": "-",
    "client_ip": "-",
    "method": None,
    "path": None,
}

# Anything on a record beyond these was passed as ``extra``.
_RESERVED = (
    frozenset(vars(logging.makeLogRecord({})))
    | {"message", "asctime", "taskName"}
    | frozenset(_CONTEXT_DEFAULTS)
)

# Audit record attribute -> audit file field.
_AUDIT_FIELDS = (
    ("audit_id", "audit_id"),
    ("certificate_id", "certificate_id"),
    ("verification_method", "method"),
    ("result", "result"),
    ("response_time_ms", "latency_ms"),
    ("verifier_ip", "verifier_ip"),
    ("lookup_key", "lookup_key"),
    ("error_message", "error"),
    ("request_id", "request_id"),
)


def _timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, tz=UTC).isoformat()


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message, context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict = {
            "timestamp": _timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update(
            (key, getattr(record, key))
            for key in _CONTEXT_DEFAULTS
            if getattr(record, key, None) is not None
        )
        data.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RESERVED and not key.startswith("_")
        )
        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Console format for development."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(request_id)s] %(client_ip)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


class AuditLineFormatter(logging.Formatter):
    """Fixed-shape JSON line per verification attempt.

    Missing attributes are written as ``null`` so every line has the
    same keys, which keeps the file easy to load into a table.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = {"ts": _timestamp(record)}
        for attr, field in _AUDIT_FIELDS:
            value = getattr(record, attr, None)
            line[field] = None if value == "-" else value
        return json.dumps(line, default=str)


class RequestContextFilter(logging.Filter):
    """Copy the active Flask request's context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for key, default in _CONTEXT_DEFAULTS.items():
            if not hasattr(record, key):
                setattr(record, key, default)

        from flask import g, has_request_context, request  # noqa: PLC0415

        if has_request_context():
            record.request_id = getattr(g, "request_id", record.request_id)  # type: ignore[attr-defined]
            record.client_ip = request.remote_addr or record.client_ip  # type: ignore[attr-defined]
            record.method = request.method  # type: ignore[attr-defined]
            record.path = request.path  # type: ignore[attr-defined]
        return True


def _open_audit_file(settings: AuditLogSettings, root: logging.Logger) -> logging.Handler | None:
    try:
        handler = RotatingFileHandler(
            settings.file,  # type: ignore[arg-type]
            maxBytes=settings.max_file_size_bytes,
            backupCount=settings.backup_count,
        )
    except OSError as exc:
        root.warning("Could not open audit log file %s: %s", settings.file, exc)
        return None
    handler.setFormatter(AuditLineFormatter())
    return handler


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Install handlers on the ``certverify`` logger tree.

    Safe to call again: existing handlers on ``certverify`` and
    ``certverify.audit`` are replaced.  Returns the ``certverify`` logger.
    """
    context = RequestContextFilter()

    root = logging.getLogger("certverify")
    root.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
    root.handlers.clear()
    root.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(StructuredFormatter() if settings.format == "json" else TextFormatter())
    console.addFilter(context)
    root.addHandler(console)

    logging.getLogger("certverify.access").setLevel(logging.INFO)

    audit = logging.getLogger("certverify.audit")
    audit.handlers.clear()
    if not settings.audit.enabled:
        audit.setLevel(logging.CRITICAL + 1)
    else:
        audit.setLevel(logging.INFO)
        handler = _open_audit_file(settings.audit, root) if settings.audit.file else None
        if handler is not None:
            handler.addFilter(context)
            audit.addHandler(handler)

    for name in ("werkzeug", "gunicorn.access", "gunicorn.error"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return root
