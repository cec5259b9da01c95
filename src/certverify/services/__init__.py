"""Service layer: verification orchestration and background workers."""

from certverify.services.verification import VerificationEngine, VerifierContext

__all__ = ["VerificationEngine", "VerifierContext"]
