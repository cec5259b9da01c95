"""PostgreSQL repositories (PyPGKit) for the ``database`` backends."""

from certverify.repositories.certificate import CertificateRepository
from certverify.repositories.university import UniversityRepository
from certverify.repositories.verification_log import VerificationLogRepository

__all__ = [
    "CertificateRepository",
    "UniversityRepository",
    "VerificationLogRepository",
]
