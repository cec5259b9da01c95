"""Sensitive data sanitization for log output.

:func:`sanitize_for_logs` redacts PEM bodies and signature values from
data structures before they are written to log files.  Field names and
key types stay visible for diagnostics.
"""

from __future__ import annotations

import re
from typing import Any

_SECRET_FIELDS = frozenset(
    {
        "digital_signature",
        "digitalSignature",
        "signature",
        "timestamp_token",
        "timestampToken",
        "auth_value",
        "password",
    },
)

_PEM_BODY_RE = re.compile(
    r"(-----BEGIN [A-Z0-9 ]+-----)"
    r"([\s\S]*?)"
    r"(-----END [A-Z0-9 ]+-----)",
)

_PREVIEW_LENGTH = 8


def sanitize_pem(pem: str) -> str:
    """Replace the base64 body of PEM blocks with ``[REDACTED]``.

    Preserves BEGIN/END markers so the type of object is still visible.
    """

    def _redact(m: re.Match) -> str:
        return f"{m.group(1)}\n[REDACTED]\n{m.group(3)}"

    return _PEM_BODY_RE.sub(_redact, pem)


def redact_secret(value: Any) -> str:  # noqa: ANN401
    """Short preview of a secret-ish value, e.g. ``'MEUCIQDx...[REDACTED]'``."""
    text = str(value)
    if len(text) <= _PREVIEW_LENGTH:
        return "[REDACTED]"
    return f"{text[:_PREVIEW_LENGTH]}...[REDACTED]"


def sanitize_for_logs(data: Any) -> Any:  # noqa: ANN401
    """Recursively sanitize sensitive material in *data*.

    Handles dicts, lists and plain strings.  Non-sensitive data passes
    through unchanged.
    """
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if key in _SECRET_FIELDS and value is not None:
                result[key] = redact_secret(value)
            else:
                result[key] = sanitize_for_logs(value)
        return result

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    if isinstance(data, str) and "-----BEGIN " in data:
        return sanitize_pem(data)

    return data
