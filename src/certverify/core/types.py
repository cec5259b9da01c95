"""Enumerated types for the verification domain.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is a
plain string that psycopg serialises as TEXT and JSON round-trips
naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Certificate
# ---------------------------------------------------------------------------


class CertificateStatus(StrEnum):
    ACTIVE = "active"
    REVOKED = "revoked"
    SUSPENDED = "suspended"


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


class VerificationMethod(StrEnum):
    """How a verification request identified its subject."""

    ID = "id"
    CODE = "code"
    SIGNATURE = "signature"
    BULK = "bulk"


class VerificationOutcome(StrEnum):
    """Tri-state result stored in the audit log.

    ``ERROR`` is reserved for transport faults; a missing certificate
    or a bad signature is ``INVALID``.
    """

    VALID = "valid"
    INVALID = "invalid"
    ERROR = "error"
