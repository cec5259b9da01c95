"""Structured security event logger.

Emits standardized security events for SIEM integration.  All events
go to the ``certverify.security`` logger with a consistent
``event_id`` field for filtering and alerting.

Signature values and PEM bodies are redacted via
:func:`~certverify.logging.sanitize.sanitize_for_logs` before emission.
"""

from __future__ import annotations

import logging
from typing import Any

from certverify.logging.sanitize import sanitize_for_logs

security_log = logging.getLogger("certverify.security")


def _emit(
    event_id: str,
    message: str,
    *args: Any,  # noqa: ANN401
    severity: str = "INFO",
    **extra: Any,  # noqa: ANN401
) -> None:
    """Emit a structured security event.

    All *extra* keyword arguments are sanitized before logging.
    """
    data: dict[str, object] = {
        "event_id": event_id,
        "severity": severity,
    }
    data.update(sanitize_for_logs(extra))
    level = getattr(logging, severity.upper(), logging.INFO)
    security_log.log(level, message, *args, extra=data)


def signature_rejected(
    certificate_id: str | None,
    university_id: str,
    method: str,
) -> None:
    """A certificate or raw hash failed signature verification."""
    _emit(
        "certverify.security.signature_rejected",
        "Signature verification failed: certificate=%s university=%s",
        certificate_id or "-",
        university_id,
        severity="WARNING",
        certificate_id=certificate_id,
        university_id=university_id,
        verification_method=method,
    )


def inactive_certificate_presented(
    certificate_id: str,
    status: str,
    reason: str | None = None,
) -> None:
    """A revoked or suspended certificate was submitted for verification."""
    _emit(
        "certverify.security.inactive_certificate_presented",
        "Inactive certificate presented: %s (status=%s)",
        certificate_id,
        status,
        severity="WARNING",
        certificate_id=certificate_id,
        status=status,
        revocation_reason=reason,
    )


def directory_unavailable(lookup: str, detail: str) -> None:
    """A directory lookup failed with a transport error."""
    _emit(
        "certverify.security.directory_unavailable",
        "Directory unavailable during %s: %s",
        lookup,
        detail,
        severity="ERROR",
        lookup=lookup,
    )


def rate_limit_exceeded(key: str, category: str, retry_after: int) -> None:
    """A client exceeded a request admission limit."""
    _emit(
        "certverify.security.rate_limit_exceeded",
        "Rate limit exceeded: key=%s category=%s",
        key,
        category,
        severity="WARNING",
        key=key,
        category=category,
        retry_after=retry_after,
    )


def audit_write_failed(certificate_id: str, error: str) -> None:
    """A verification audit entry could not be persisted."""
    _emit(
        "certverify.security.audit_write_failed",
        "Audit write failed for certificate %s: %s",
        certificate_id,
        error,
        severity="ERROR",
        certificate_id=certificate_id,
    )


def audit_purged(older_than_days: int, deleted: int) -> None:
    """Verification log entries were removed by retention."""
    _emit(
        "certverify.security.audit_purged",
        "Purged %d verification log entries older than %d days",
        deleted,
        older_than_days,
        older_than_days=older_than_days,
        deleted=deleted,
    )
