"""Certificate verification engine.

Every request walks the same pipeline::

    LOOKUP -> STATUS_CHECK -> UNIVERSITY_LOOKUP -> SIGNATURE_CHECK -> DONE

Each stage can end the request with an invalid verdict; only a pass
through all four yields ``valid=True``.  Exactly one audit entry is
recorded per request, with latency measured from the start of LOOKUP.

Outcomes map onto the audit log as follows:

- not found, inactive status, bad signature: ``invalid``
- directory transport failure or timeout: ``error``, and the
  :class:`~certverify.core.errors.DirectoryUnavailableError` is
  re-raised so the caller can tell it apart from "not found"
- any other failure inside the pipeline: ``error`` with a generic
  message, then re-raised
- malformed input: :class:`~certverify.core.errors.ValidationError`,
  raised before any lookup and never audited

Usage::

    engine = VerificationEngine(certificates, universities, audit)
    result = engine.verify(certificate_id="C1")
    batch = engine.verify_bulk([VerificationRequest(verification_code="AB12CD")])
"""

from __future__ import annotations

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from certverify.core.crypto import verify_signature
from certverify.core.errors import DirectoryUnavailableError, FieldError, ValidationError
from certverify.core.types import CertificateStatus, VerificationMethod, VerificationOutcome
from certverify.logging import security_events
from certverify.models import (
    BulkVerificationResult,
    VerificationLogEntry,
    VerificationRequest,
    VerificationResult,
)
from certverify.models.verification import UNKNOWN_CERTIFICATE

if TYPE_CHECKING:
    from collections.abc import Sequence

    from certverify.audit.log import AuditLog
    from certverify.directory.base import CertificateDirectory, UniversityDirectory
    from certverify.metrics.collector import MetricsCollector
    from certverify.models import Certificate, University

log = logging.getLogger(__name__)

# Audit subject for direct signature checks, which have no certificate.
SIGNATURE_SUBJECT = "signature-verification"

REASON_NOT_FOUND = "certificate not found"
REASON_SUSPENDED = "certificate is currently suspended"
REASON_NOT_ACTIVE = "certificate is not in active status"
REASON_UNIVERSITY_NOT_FOUND = "university not found"
REASON_PUBLIC_KEY_NOT_FOUND = "university public key not found"
REASON_SIGNATURE_FAILED = "digital signature verification failed"
REASON_MISSING_KEY = "either certificateId or verificationCode must be provided"
REASON_BOTH_KEYS = "provide either certificateId or verificationCode, not both"
REASON_DIRECTORY_ERROR = "verification failed: directory unavailable"
REASON_INTERNAL_ERROR = "verification failed due to internal error"

_HEX64_RE = re.compile(r"^[0-9a-fA-F]{64}$")
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")


def revoked_reason(revocation_reason: str | None) -> str:
    return f"certificate has been revoked (reason: {revocation_reason or 'not specified'})"


@dataclass(frozen=True)
class VerifierContext:
    """Who asked: copied into every audit entry of a request."""

    ip: str | None = None
    info: str | None = None


_NO_CONTEXT = VerifierContext()


@dataclass
class _Attempt:
    """Bookkeeping for one walk through the pipeline."""

    method: VerificationMethod
    lookup_key: str | None
    context: VerifierContext
    started: float
    recorded: bool = False


class VerificationEngine:
    """Produces verdicts from the certificate and university directories.

    Stateless across requests: concurrent verifications of the same
    certificate need no coordination.

    Parameters
    ----------
    certificates, universities:
        Directory implementations.
    audit:
        Fire-and-forget audit log.
    max_bulk:
        Largest accepted bulk batch.
    bulk_max_workers:
        Parallelism for bulk items.  ``1`` processes items in order on
        the calling thread.
    metrics:
        Optional counter sink.

    """

    def __init__(
        self,
        certificates: CertificateDirectory,
        universities: UniversityDirectory,
        audit: AuditLog,
        *,
        max_bulk: int = 100,
        bulk_max_workers: int = 8,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._certificates = certificates
        self._universities = universities
        self._audit = audit
        self._max_bulk = max_bulk
        self._bulk_max_workers = max(1, bulk_max_workers)
        self._metrics = metrics

    @property
    def max_bulk(self) -> int:
        return self._max_bulk

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def verify(
        self,
        certificate_id: str | None = None,
        verification_code: str | None = None,
        *,
        context: VerifierContext = _NO_CONTEXT,
    ) -> VerificationResult:
        """Verify by exactly one of *certificate_id* / *verification_code*.

        Raises :class:`ValidationError` when both or neither are given.
        """
        request = VerificationRequest(certificate_id or None, verification_code or None)
        problem = _request_problem(request)
        if problem is not None:
            raise ValidationError(
                problem,
                [
                    FieldError("certificateId", problem),
                    FieldError("verificationCode", problem),
                ],
            )
        if request.certificate_id is not None:
            return self.verify_by_id(request.certificate_id, context=context)
        return self.verify_by_code(request.verification_code, context=context)  # type: ignore[arg-type]

    def verify_by_id(
        self,
        certificate_id: str,
        *,
        context: VerifierContext = _NO_CONTEXT,
    ) -> VerificationResult:
        _require("certificateId", certificate_id)
        return self._run(
            VerificationRequest(certificate_id=certificate_id),
            VerificationMethod.ID,
            context,
        )

    def verify_by_code(
        self,
        verification_code: str,
        *,
        context: VerifierContext = _NO_CONTEXT,
    ) -> VerificationResult:
        """Resolve *verification_code*, then continue as a by-ID check.

        Status, university and signature checks are shared with
        :meth:`verify_by_id`, so both methods agree on every verdict.
        """
        _require("verificationCode", verification_code)
        return self._run(
            VerificationRequest(verification_code=verification_code),
            VerificationMethod.CODE,
            context,
        )

    def verify_signature_direct(
        self,
        certificate_hash: str,
        digital_signature: str,
        university_id: str,
        *,
        context: VerifierContext = _NO_CONTEXT,
    ) -> VerificationResult:
        """Check *digital_signature* over *certificate_hash* without a certificate.

        Runs only UNIVERSITY_LOOKUP and SIGNATURE_CHECK.  The public key
        is resolved first; the university record is attached to the
        result when available.
        """
        errors = []
        if not isinstance(certificate_hash, str) or not _HEX64_RE.match(certificate_hash):
            errors.append(FieldError("certificateHash", "must be a 64-character hex string"))
        if not isinstance(digital_signature, str) or not _BASE64_RE.match(digital_signature):
            errors.append(FieldError("digitalSignature", "must be a base64 string"))
        if not isinstance(university_id, str) or not university_id:
            errors.append(FieldError("universityId", "is required"))
        if errors:
            raise ValidationError("Invalid signature verification request", errors)

        attempt = _Attempt(
            method=VerificationMethod.SIGNATURE,
            lookup_key=university_id,
            context=context,
            started=time.monotonic(),
        )
        try:
            return self._signature_checks(
                attempt,
                certificate_hash,
                digital_signature,
                university_id,
            )
        except Exception:
            self._audit_unrecorded(attempt, SIGNATURE_SUBJECT)
            raise

    def _signature_checks(
        self,
        attempt: _Attempt,
        certificate_hash: str,
        digital_signature: str,
        university_id: str,
    ) -> VerificationResult:
        public_key = self._guarded(
            attempt,
            SIGNATURE_SUBJECT,
            "university public key lookup",
            self._universities.get_public_key,
            university_id,
        )
        if public_key is None:
            return self._finish(
                attempt,
                SIGNATURE_SUBJECT,
                VerificationOutcome.INVALID,
                reason=REASON_PUBLIC_KEY_NOT_FOUND,
            )

        university = self._guarded(
            attempt,
            SIGNATURE_SUBJECT,
            "university lookup",
            self._universities.get_by_id,
            university_id,
        )

        if not verify_signature(certificate_hash, digital_signature, public_key):
            security_events.signature_rejected(None, university_id, attempt.method.value)
            return self._finish(
                attempt,
                SIGNATURE_SUBJECT,
                VerificationOutcome.INVALID,
                reason=REASON_SIGNATURE_FAILED,
                university=university,
            )

        return self._finish(
            attempt,
            SIGNATURE_SUBJECT,
            VerificationOutcome.VALID,
            university=university,
        )

    def verify_bulk(
        self,
        items: Sequence[VerificationRequest | dict[str, Any]],
        *,
        context: VerifierContext = _NO_CONTEXT,
    ) -> BulkVerificationResult:
        """Verify every item independently; output order matches input order.

        The whole batch is rejected with :class:`ValidationError` when
        it is empty or larger than ``max_bulk``, before any item runs.
        A failing item yields an invalid result for that position only.
        """
        requests = [_coerce_request(item) for item in items]
        count = len(requests)
        if count == 0:
            raise ValidationError(
                "At least one certificate is required",
                [FieldError("certificates", "must contain at least 1 item")],
            )
        if count > self._max_bulk:
            msg = f"Maximum {self._max_bulk} certificates allowed per bulk request"
            raise ValidationError(
                msg,
                [FieldError("certificates", f"must contain at most {self._max_bulk} items")],
            )

        workers = min(self._bulk_max_workers, count)
        if workers == 1:
            results = [self._bulk_item(r, context) for r in requests]
        else:
            with ThreadPoolExecutor(
                max_workers=workers,
                thread_name_prefix="certverify-bulk",
            ) as pool:
                futures = [pool.submit(self._bulk_item, r, context) for r in requests]
                results = [f.result() for f in futures]

        batch = BulkVerificationResult(results=tuple(results))
        log.info(
            "Bulk verification: %d requested, %d valid, %d invalid",
            batch.total_requested,
            batch.valid_count,
            batch.invalid_count,
        )
        return batch

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _bulk_item(
        self,
        request: VerificationRequest,
        context: VerifierContext,
    ) -> VerificationResult:
        problem = _request_problem(request)
        if problem is not None:
            return VerificationResult(
                valid=False,
                method=VerificationMethod.BULK,
                reason=problem,
                request=request,
            )
        try:
            return self._run(request, VerificationMethod.BULK, context)
        except DirectoryUnavailableError:
            return VerificationResult(
                valid=False,
                method=VerificationMethod.BULK,
                reason=REASON_DIRECTORY_ERROR,
                error=True,
                request=request,
            )
        except Exception:
            log.exception("Bulk verification item %s failed", request.lookup_key)
            return VerificationResult(
                valid=False,
                method=VerificationMethod.BULK,
                reason=REASON_INTERNAL_ERROR,
                error=True,
                request=request,
            )

    def _run(
        self,
        request: VerificationRequest,
        method: VerificationMethod,
        context: VerifierContext,
    ) -> VerificationResult:
        attempt = _Attempt(
            method=method,
            lookup_key=request.lookup_key,
            context=context,
            started=time.monotonic(),
        )
        # A by-ID miss is audited under the requested ID; a by-code
        # miss has no identifier to report.
        subject = request.certificate_id or UNKNOWN_CERTIFICATE
        try:
            return self._lookup(attempt, subject, request)
        except Exception:
            self._audit_unrecorded(attempt, subject)
            raise

    def _lookup(
        self,
        attempt: _Attempt,
        subject: str,
        request: VerificationRequest,
    ) -> VerificationResult:
        # -- LOOKUP --
        if request.certificate_id is not None:
            certificate = self._guarded(
                attempt,
                subject,
                "certificate lookup",
                self._certificates.get_by_id,
                request.certificate_id,
            )
        else:
            certificate = self._guarded(
                attempt,
                subject,
                "certificate lookup",
                self._certificates.get_by_code,
                request.verification_code,
            )
        if certificate is None:
            return self._finish(
                attempt,
                subject,
                VerificationOutcome.INVALID,
                reason=REASON_NOT_FOUND,
                request=request,
            )

        return self._check_resolved(attempt, certificate, request)

    def _check_resolved(
        self,
        attempt: _Attempt,
        certificate: Certificate,
        request: VerificationRequest,
    ) -> VerificationResult:
        # -- STATUS_CHECK --
        status_reason = _status_reason(certificate)
        if status_reason is not None:
            security_events.inactive_certificate_presented(
                certificate.id,
                str(certificate.status),
                certificate.revocation_reason,
            )
            return self._finish(
                attempt,
                certificate.id,
                VerificationOutcome.INVALID,
                reason=status_reason,
                certificate=certificate,
                request=request,
            )

        # -- UNIVERSITY_LOOKUP --
        university = self._guarded(
            attempt,
            certificate.id,
            "university lookup",
            self._universities.get_by_id,
            certificate.university_id,
        )
        if university is None:
            log.warning(
                "Certificate %s references unknown university %s",
                certificate.id,
                certificate.university_id,
            )
            return self._finish(
                attempt,
                certificate.id,
                VerificationOutcome.INVALID,
                reason=REASON_UNIVERSITY_NOT_FOUND,
                certificate=certificate,
                request=request,
            )

        # -- SIGNATURE_CHECK --
        if not verify_signature(
            certificate.certificate_hash,
            certificate.digital_signature,
            university.public_key or "",
        ):
            security_events.signature_rejected(
                certificate.id,
                university.id,
                attempt.method.value,
            )
            return self._finish(
                attempt,
                certificate.id,
                VerificationOutcome.INVALID,
                reason=REASON_SIGNATURE_FAILED,
                certificate=certificate,
                university=university,
                request=request,
            )

        return self._finish(
            attempt,
            certificate.id,
            VerificationOutcome.VALID,
            certificate=certificate,
            university=university,
            request=request,
        )

    def _guarded(
        self,
        attempt: _Attempt,
        subject: str,
        what: str,
        lookup,  # noqa: ANN001
        key: str,
    ):  # noqa: ANN202
        """Run a directory *lookup*; audit and re-raise any failure as ``error``."""
        try:
            return lookup(key)
        except DirectoryUnavailableError as exc:
            log.error("Directory unavailable during %s for %s: %s", what, key, exc.detail)
            security_events.directory_unavailable(what, exc.detail)
            self._record(attempt, subject, VerificationOutcome.ERROR, exc.detail)
            raise
        except Exception:
            log.exception("Unexpected failure during %s for %s", what, key)
            self._record(attempt, subject, VerificationOutcome.ERROR, REASON_INTERNAL_ERROR)
            raise

    def _audit_unrecorded(self, attempt: _Attempt, subject: str) -> None:
        """Record an ``error`` entry unless *attempt* already has one."""
        if not attempt.recorded:
            log.exception("Verification for %s failed", attempt.lookup_key)
            self._record(attempt, subject, VerificationOutcome.ERROR, REASON_INTERNAL_ERROR)

    def _finish(
        self,
        attempt: _Attempt,
        subject: str,
        outcome: VerificationOutcome,
        *,
        reason: str | None = None,
        certificate: Certificate | None = None,
        university: University | None = None,
        request: VerificationRequest | None = None,
    ) -> VerificationResult:
        self._record(attempt, subject, outcome, reason)
        return VerificationResult(
            valid=outcome is VerificationOutcome.VALID,
            method=attempt.method,
            reason=reason,
            certificate=certificate,
            university=university,
            request=request,
        )

    def _record(
        self,
        attempt: _Attempt,
        subject: str,
        outcome: VerificationOutcome,
        error_message: str | None,
    ) -> None:
        attempt.recorded = True
        elapsed_ms = int((time.monotonic() - attempt.started) * 1000)
        if self._metrics is not None:
            self._metrics.increment(
                "certverify_verifications_total",
                labels={"method": attempt.method.value, "outcome": outcome.value},
            )
        self._audit.record(
            VerificationLogEntry(
                certificate_id=subject,
                verification_method=attempt.method,
                result=outcome,
                response_time_ms=elapsed_ms,
                verifier_ip=attempt.context.ip,
                verifier_info=attempt.context.info,
                error_message=error_message,
                lookup_key=attempt.lookup_key,
            ),
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _status_reason(certificate: Certificate) -> str | None:
    """Reason *certificate* fails STATUS_CHECK, or ``None`` when active."""
    status = certificate.status
    if status == CertificateStatus.ACTIVE:
        return None
    if status == CertificateStatus.REVOKED:
        return revoked_reason(certificate.revocation_reason)
    if status == CertificateStatus.SUSPENDED:
        return REASON_SUSPENDED
    return REASON_NOT_ACTIVE


def _request_problem(request: VerificationRequest) -> str | None:
    has_id = bool(request.certificate_id)
    has_code = bool(request.verification_code)
    if has_id and has_code:
        return REASON_BOTH_KEYS
    if not has_id and not has_code:
        return REASON_MISSING_KEY
    return None


def _require(field: str, value: str | None) -> None:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required", [FieldError(field, "is required")])


def _coerce_request(item: VerificationRequest | dict[str, Any]) -> VerificationRequest:
    if isinstance(item, VerificationRequest):
        return item
    return VerificationRequest(
        certificate_id=item.get("certificateId") or item.get("certificate_id") or None,
        verification_code=item.get("verificationCode") or item.get("verification_code") or None,
    )
