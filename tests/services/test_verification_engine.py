"""Tests for certverify.services.verification -- VerificationEngine."""

from __future__ import annotations

import dataclasses
from unittest.mock import MagicMock, patch

import pytest

from certverify.audit import AuditLog, InMemoryAuditLogStore
from certverify.config.settings import build_settings
from certverify.core.errors import DirectoryUnavailableError, ValidationError
from certverify.core.types import CertificateStatus, VerificationMethod, VerificationOutcome
from certverify.directory.http import HttpCertificateDirectory
from certverify.directory.memory import InMemoryCertificateDirectory, InMemoryUniversityDirectory
from certverify.metrics.collector import MetricsCollector
from certverify.models import VerificationRequest
from certverify.services.verification import (
    REASON_BOTH_KEYS,
    REASON_DIRECTORY_ERROR,
    REASON_INTERNAL_ERROR,
    REASON_MISSING_KEY,
    REASON_NOT_ACTIVE,
    REASON_NOT_FOUND,
    REASON_PUBLIC_KEY_NOT_FOUND,
    REASON_SIGNATURE_FAILED,
    REASON_SUSPENDED,
    REASON_UNIVERSITY_NOT_FOUND,
    SIGNATURE_SUBJECT,
    VerificationEngine,
    VerifierContext,
)


@pytest.fixture()
def store():
    return InMemoryAuditLogStore()


@pytest.fixture()
def metrics():
    return MetricsCollector()


@pytest.fixture()
def directories(make_certificate, university):
    certificates = InMemoryCertificateDirectory([make_certificate()])
    universities = InMemoryUniversityDirectory([university])
    return certificates, universities


@pytest.fixture()
def engine(directories, store, metrics):
    certificates, universities = directories
    return VerificationEngine(
        certificates,
        universities,
        AuditLog(store, max_workers=0),
        max_bulk=5,
        bulk_max_workers=1,
        metrics=metrics,
    )


# ---------------------------------------------------------------------------
# By ID / by code
# ---------------------------------------------------------------------------


class TestVerifyById:
    def test_valid_certificate(self, engine, store, university):
        result = engine.verify_by_id("C1")
        assert result.valid is True
        assert result.reason is None
        assert result.method is VerificationMethod.ID
        assert result.certificate.id == "C1"
        assert result.university == university

        (entry,) = store.all()
        assert entry.certificate_id == "C1"
        assert entry.result is VerificationOutcome.VALID
        assert entry.verification_method is VerificationMethod.ID
        assert entry.response_time_ms >= 0

    def test_not_found_audited_under_requested_id(self, engine, store):
        result = engine.verify_by_id("C404")
        assert result.valid is False
        assert result.reason == REASON_NOT_FOUND
        assert result.certificate is None
        (entry,) = store.all()
        assert entry.certificate_id == "C404"
        assert entry.result is VerificationOutcome.INVALID

    def test_revoked_with_reason(self, engine, directories, make_certificate, store):
        directories[0].add(
            make_certificate(status=CertificateStatus.REVOKED, revocation_reason="fraud"),
        )
        result = engine.verify_by_id("C1")
        assert result.valid is False
        assert result.reason == "certificate has been revoked (reason: fraud)"
        assert result.certificate is not None
        assert result.university is None
        assert store.all()[0].result is VerificationOutcome.INVALID

    def test_revoked_without_reason(self, engine, directories, make_certificate):
        directories[0].add(make_certificate(status=CertificateStatus.REVOKED))
        result = engine.verify_by_id("C1")
        assert result.reason == "certificate has been revoked (reason: not specified)"

    def test_suspended(self, engine, directories, make_certificate):
        directories[0].add(make_certificate(status=CertificateStatus.SUSPENDED))
        assert engine.verify_by_id("C1").reason == REASON_SUSPENDED

    def test_unrecognised_status(self, engine, directories, make_certificate):
        directories[0].add(make_certificate(status="pending"))
        assert engine.verify_by_id("C1").reason == REASON_NOT_ACTIVE

    def test_missing_status_is_not_active(self, engine, directories, make_certificate):
        directories[0].add(make_certificate(status=""))
        result = engine.verify_by_id("C1")
        assert result.valid is False
        assert result.reason == REASON_NOT_ACTIVE

    def test_university_missing(self, engine, directories, make_certificate, store):
        directories[0].add(make_certificate(university_id="U9"))
        result = engine.verify_by_id("C1")
        assert result.valid is False
        assert result.reason == REASON_UNIVERSITY_NOT_FOUND
        assert store.all()[0].result is VerificationOutcome.INVALID

    def test_tampered_hash_fails_signature(self, engine, directories, make_certificate):
        cert = make_certificate()
        tampered = "0" * 64 if cert.certificate_hash != "0" * 64 else "1" * 64
        directories[0].add(dataclasses.replace(cert, certificate_hash=tampered))
        result = engine.verify_by_id("C1")
        assert result.valid is False
        assert result.reason == REASON_SIGNATURE_FAILED
        assert result.university is not None

    def test_wrong_university_key(self, engine, directories, university, other_public_key_pem):
        directories[1].add(dataclasses.replace(university, public_key=other_public_key_pem))
        assert engine.verify_by_id("C1").reason == REASON_SIGNATURE_FAILED

    def test_university_without_key(self, engine, directories, university):
        directories[1].add(dataclasses.replace(university, public_key=None))
        assert engine.verify_by_id("C1").reason == REASON_SIGNATURE_FAILED

    def test_empty_id_rejected_without_audit(self, engine, store):
        with pytest.raises(ValidationError):
            engine.verify_by_id("")
        assert len(store) == 0

    def test_context_copied_to_audit(self, engine, store):
        engine.verify_by_id("C1", context=VerifierContext(ip="203.0.113.9", info="curl/8"))
        (entry,) = store.all()
        assert entry.verifier_ip == "203.0.113.9"
        assert entry.verifier_info == "curl/8"

    def test_metrics_counted(self, engine, metrics):
        engine.verify_by_id("C1")
        engine.verify_by_id("nope")
        assert metrics.get(
            "certverify_verifications_total",
            labels={"method": "id", "outcome": "valid"},
        ) == 1
        assert metrics.get(
            "certverify_verifications_total",
            labels={"method": "id", "outcome": "invalid"},
        ) == 1


class TestVerifyByCode:
    def test_valid(self, engine, store):
        result = engine.verify_by_code("ABC123XY")
        assert result.valid is True
        assert result.method is VerificationMethod.CODE
        (entry,) = store.all()
        assert entry.certificate_id == "C1"
        assert entry.lookup_key == "ABC123XY"
        assert entry.verification_method is VerificationMethod.CODE

    def test_unknown_code_audited_as_unknown(self, engine, store):
        result = engine.verify_by_code("ZZZ999")
        assert result.valid is False
        assert result.reason == REASON_NOT_FOUND
        assert store.all()[0].certificate_id == "unknown"

    def test_same_verdict_as_by_id(self, engine, directories, make_certificate):
        directories[0].add(make_certificate(status=CertificateStatus.SUSPENDED))
        by_id = engine.verify_by_id("C1")
        by_code = engine.verify_by_code("ABC123XY")
        assert (by_id.valid, by_id.reason) == (by_code.valid, by_code.reason)

    def test_one_audit_entry_per_request(self, engine, store):
        engine.verify_by_code("ABC123XY")
        assert len(store) == 1


class TestVerifyDispatch:
    def test_by_id(self, engine):
        assert engine.verify(certificate_id="C1").method is VerificationMethod.ID

    def test_by_code(self, engine):
        assert engine.verify(verification_code="ABC123XY").method is VerificationMethod.CODE

    def test_both_rejected(self, engine, store):
        with pytest.raises(ValidationError, match="not both"):
            engine.verify(certificate_id="C1", verification_code="ABC123XY")
        assert len(store) == 0

    def test_neither_rejected(self, engine):
        with pytest.raises(ValidationError) as exc_info:
            engine.verify()
        assert exc_info.value.detail == REASON_MISSING_KEY
        fields = {e.field for e in exc_info.value.errors}
        assert fields == {"certificateId", "verificationCode"}

    def test_empty_strings_count_as_absent(self, engine):
        with pytest.raises(ValidationError):
            engine.verify(certificate_id="", verification_code="")


# ---------------------------------------------------------------------------
# Directory failures
# ---------------------------------------------------------------------------


class TestDirectoryUnavailable:
    def _engine(self, certificates, universities, store):
        return VerificationEngine(certificates, universities, AuditLog(store, max_workers=0))

    def test_certificate_lookup_failure_is_error_not_not_found(self, university, store):
        certificates = MagicMock()
        certificates.get_by_id.side_effect = DirectoryUnavailableError("timeout")
        engine = self._engine(certificates, InMemoryUniversityDirectory([university]), store)
        with pytest.raises(DirectoryUnavailableError):
            engine.verify_by_id("C1")
        (entry,) = store.all()
        assert entry.result is VerificationOutcome.ERROR
        assert entry.error_message == "timeout"

    def test_university_lookup_failure(self, make_certificate, store):
        universities = MagicMock()
        universities.get_by_id.side_effect = DirectoryUnavailableError("503")
        engine = self._engine(
            InMemoryCertificateDirectory([make_certificate()]),
            universities,
            store,
        )
        with pytest.raises(DirectoryUnavailableError):
            engine.verify_by_code("ABC123XY")
        assert store.all()[0].result is VerificationOutcome.ERROR

    def test_unexpected_lookup_failure_audited_once(self, university, store):
        certificates = MagicMock()
        certificates.get_by_id.side_effect = KeyError("boom")
        engine = self._engine(certificates, InMemoryUniversityDirectory([university]), store)
        with pytest.raises(KeyError):
            engine.verify_by_id("C1")
        (entry,) = store.all()
        assert entry.certificate_id == "C1"
        assert entry.result is VerificationOutcome.ERROR
        assert entry.error_message == REASON_INTERNAL_ERROR

    def test_unexpected_public_key_failure_audited(self, store):
        universities = MagicMock()
        universities.get_public_key.side_effect = RuntimeError("driver bug")
        engine = self._engine(MagicMock(), universities, store)
        with pytest.raises(RuntimeError):
            engine.verify_signature_direct("a" * 64, "c2ln", "U1")
        (entry,) = store.all()
        assert entry.certificate_id == SIGNATURE_SUBJECT
        assert entry.result is VerificationOutcome.ERROR

    def test_failure_after_lookup_audited_once(self, make_certificate, store):
        certificates = MagicMock()
        certificates.get_by_id.return_value = make_certificate()
        universities = MagicMock()
        universities.get_by_id.return_value = object()
        engine = self._engine(certificates, universities, store)
        with pytest.raises(AttributeError):
            engine.verify_by_id("C1")
        (entry,) = store.all()
        assert entry.result is VerificationOutcome.ERROR

    def test_read_timeout_through_http_directory(self, university, store):
        resp = MagicMock()
        resp.status = 200
        resp.read.side_effect = TimeoutError("timed out")
        opener = MagicMock()
        opener.open.return_value = resp
        settings = build_settings(
            {
                "directory": {
                    "backend": "http",
                    "certificate_service_url": "http://certs.internal",
                    "university_service_url": "http://unis.internal",
                    "timeout_seconds": 0.5,
                },
            },
        ).directory
        engine = self._engine(
            HttpCertificateDirectory(settings),
            InMemoryUniversityDirectory([university]),
            store,
        )
        with patch("certverify.directory.http.urllib.request.build_opener", return_value=opener):
            with pytest.raises(DirectoryUnavailableError):
                engine.verify_by_id("C1")
        (entry,) = store.all()
        assert entry.result is VerificationOutcome.ERROR


# ---------------------------------------------------------------------------
# Direct signature check
# ---------------------------------------------------------------------------


class TestVerifySignatureDirect:
    def test_valid(self, engine, make_certificate, store):
        cert = make_certificate()
        result = engine.verify_signature_direct(
            cert.certificate_hash,
            cert.digital_signature,
            "U1",
        )
        assert result.valid is True
        assert result.method is VerificationMethod.SIGNATURE
        assert result.university.name == "Example University"
        (entry,) = store.all()
        assert entry.certificate_id == SIGNATURE_SUBJECT
        assert entry.result is VerificationOutcome.VALID

    def test_signature_over_other_hash(self, engine, make_certificate):
        cert = make_certificate()
        result = engine.verify_signature_direct("f" * 64, cert.digital_signature, "U1")
        assert result.valid is False
        assert result.reason == REASON_SIGNATURE_FAILED

    def test_unknown_university(self, engine, make_certificate, store):
        cert = make_certificate()
        result = engine.verify_signature_direct(
            cert.certificate_hash,
            cert.digital_signature,
            "U404",
        )
        assert result.valid is False
        assert result.reason == REASON_PUBLIC_KEY_NOT_FOUND
        assert store.all()[0].result is VerificationOutcome.INVALID

    def test_garbage_signature_is_invalid_not_error(self, engine, make_certificate):
        cert = make_certificate()
        result = engine.verify_signature_direct(cert.certificate_hash, "AAAA", "U1")
        assert result.valid is False

    @pytest.mark.parametrize(
        ("certificate_hash", "signature", "university_id", "field"),
        [
            ("abc", "AAAA", "U1", "certificateHash"),
            ("a" * 64, "not base64!", "U1", "digitalSignature"),
            ("a" * 64, "AAAA", "", "universityId"),
        ],
    )
    def test_malformed_input(self, engine, store, certificate_hash, signature, university_id, field):
        with pytest.raises(ValidationError) as exc_info:
            engine.verify_signature_direct(certificate_hash, signature, university_id)
        assert [e.field for e in exc_info.value.errors] == [field]
        assert len(store) == 0


# ---------------------------------------------------------------------------
# Bulk
# ---------------------------------------------------------------------------


class TestVerifyBulk:
    def test_order_preserved_and_counts(self, engine):
        batch = engine.verify_bulk(
            [
                {"certificateId": "C1"},
                {"verificationCode": "NOPE99"},
                VerificationRequest(verification_code="ABC123XY"),
            ],
        )
        assert batch.total_requested == 3
        assert [r.valid for r in batch.results] == [True, False, True]
        assert batch.valid_count == 2
        assert batch.invalid_count == 1
        assert batch.results[1].request.verification_code == "NOPE99"
        assert all(r.method is VerificationMethod.BULK for r in batch.results)

    def test_parallel_workers_keep_order(self, directories, store):
        engine = VerificationEngine(
            *directories,
            AuditLog(store, max_workers=0),
            max_bulk=50,
            bulk_max_workers=4,
        )
        items = [{"certificateId": "C1" if i % 2 else f"X{i}"} for i in range(20)]
        batch = engine.verify_bulk(items)
        assert [r.valid for r in batch.results] == [bool(i % 2) for i in range(20)]
        assert len(store) == 20

    def test_item_with_both_keys_is_invalid_item(self, engine, store):
        batch = engine.verify_bulk(
            [{"certificateId": "C1", "verificationCode": "ABC123XY"}, {"certificateId": "C1"}],
        )
        assert batch.results[0].valid is False
        assert batch.results[0].reason == REASON_BOTH_KEYS
        assert batch.results[1].valid is True
        # The rejected item never reached a lookup
        assert len(store) == 1

    def test_item_with_no_key(self, engine):
        batch = engine.verify_bulk([{}])
        assert batch.results[0].reason == REASON_MISSING_KEY

    def test_empty_batch_rejected(self, engine):
        with pytest.raises(ValidationError, match="At least one"):
            engine.verify_bulk([])

    def test_oversized_batch_rejected_before_any_lookup(self, engine, store):
        with pytest.raises(ValidationError, match="Maximum 5"):
            engine.verify_bulk([{"certificateId": "C1"}] * 6)
        assert len(store) == 0

    def test_directory_error_isolated_to_item(self, university, make_certificate, store):
        certificates = MagicMock()
        good = make_certificate()

        def lookup(certificate_id):
            if certificate_id == "C2":
                raise DirectoryUnavailableError("connection reset")
            return good

        certificates.get_by_id.side_effect = lookup
        engine = VerificationEngine(
            certificates,
            InMemoryUniversityDirectory([university]),
            AuditLog(store, max_workers=0),
            bulk_max_workers=1,
        )
        batch = engine.verify_bulk([{"certificateId": "C1"}, {"certificateId": "C2"}])
        assert batch.results[0].valid is True
        assert batch.results[1].valid is False
        assert batch.results[1].error is True
        assert batch.results[1].reason == REASON_DIRECTORY_ERROR

    def test_unexpected_error_isolated_to_item(self, university, store):
        certificates = MagicMock()
        certificates.get_by_id.side_effect = KeyError("boom")
        engine = VerificationEngine(
            certificates,
            InMemoryUniversityDirectory([university]),
            AuditLog(store, max_workers=0),
            bulk_max_workers=1,
        )
        batch = engine.verify_bulk([{"certificateId": "C1"}])
        assert batch.results[0].error is True
        assert batch.results[0].valid is False
        (entry,) = store.all()
        assert entry.result is VerificationOutcome.ERROR
        assert entry.error_message == REASON_INTERNAL_ERROR
