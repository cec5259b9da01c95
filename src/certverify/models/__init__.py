"""Entity and value models for the verification domain.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from certverify.models.certificate import Certificate
from certverify.models.university import University
from certverify.models.verification import (
    BulkVerificationResult,
    DailyStatistics,
    VerificationLogEntry,
    VerificationRequest,
    VerificationResult,
)

__all__ = [
    "BulkVerificationResult",
    "Certificate",
    "DailyStatistics",
    "University",
    "VerificationLogEntry",
    "VerificationRequest",
    "VerificationResult",
]
