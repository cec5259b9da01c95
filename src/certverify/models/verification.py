"""Verification request, result and audit-log value objects.

:class:`VerificationResult` is built per request and never stored;
:class:`VerificationLogEntry` is its append-only audit projection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from certverify.core.types import VerificationMethod, VerificationOutcome

if TYPE_CHECKING:
    from certverify.models.certificate import Certificate
    from certverify.models.university import University

UNKNOWN_CERTIFICATE = "unknown"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class VerificationRequest:
    """One lookup key: exactly one of the two fields is expected."""

    certificate_id: str | None = None
    verification_code: str | None = None

    @property
    def lookup_key(self) -> str | None:
        return self.certificate_id or self.verification_code


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    method: VerificationMethod
    timestamp: datetime = field(default_factory=_now)
    reason: str | None = None
    certificate: Certificate | None = None
    university: University | None = None
    # Set only on bulk items that hit a transport fault.
    error: bool = False
    request: VerificationRequest | None = None


@dataclass(frozen=True)
class BulkVerificationResult:
    results: tuple[VerificationResult, ...]

    @property
    def total_requested(self) -> int:
        return len(self.results)

    @property
    def valid_count(self) -> int:
        return sum(1 for r in self.results if r.valid)

    @property
    def invalid_count(self) -> int:
        return self.total_requested - self.valid_count


@dataclass(frozen=True)
class VerificationLogEntry:
    certificate_id: str
    verification_method: VerificationMethod
    result: VerificationOutcome
    response_time_ms: int
    verifier_ip: str | None = None
    verifier_info: str | None = None
    error_message: str | None = None
    lookup_key: str | None = None
    timestamp: datetime = field(default_factory=_now)
    id: UUID = field(default_factory=uuid4)


@dataclass(frozen=True)
class DailyStatistics:
    day: date
    total: int
    valid_count: int
    invalid_count: int
    error_count: int
    avg_response_time_ms: float | None
