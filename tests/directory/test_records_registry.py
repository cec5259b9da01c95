"""Tests for registry payload parsing and directory selection."""

from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock

import pytest

from certverify.config.settings import build_settings
from certverify.core.types import CertificateStatus
from certverify.directory import load_directories
from certverify.directory.http import HttpCertificateDirectory, HttpUniversityDirectory
from certverify.directory.memory import InMemoryCertificateDirectory
from certverify.directory.records import certificate_from_dict, university_from_dict
from certverify.repositories import CertificateRepository, UniversityRepository


class TestCertificateFromDict:
    def test_camel_case(self):
        cert = certificate_from_dict(
            {
                "id": "C1",
                "universityId": "U1",
                "verificationCode": "ABC123",
                "status": "REVOKED",
                "revocationReason": "fraud",
                "cgpa": "3.80",
                "completionDate": "2024-05-30",
            },
        )
        assert cert.university_id == "U1"
        assert cert.status == CertificateStatus.REVOKED
        assert cert.revocation_reason == "fraud"
        assert cert.cgpa == pytest.approx(3.8)
        assert cert.completion_date == date(2024, 5, 30)

    def test_snake_case(self):
        cert = certificate_from_dict({"id": 7, "university_id": "U1", "status": "active"})
        assert cert.id == "7"
        assert cert.status == CertificateStatus.ACTIVE

    def test_unknown_status_kept_as_text(self):
        cert = certificate_from_dict({"id": "C1", "university_id": "U1", "status": "pending"})
        assert cert.status == "pending"

    def test_missing_status_is_not_active(self):
        cert = certificate_from_dict({"id": "C1", "universityId": "U1"})
        assert cert.status == ""
        assert cert.status != CertificateStatus.ACTIVE

    def test_missing_id_raises(self):
        with pytest.raises(KeyError):
            certificate_from_dict({"universityId": "U1"})


class TestUniversityFromDict:
    def test_public_key_either_spelling(self):
        assert university_from_dict({"id": "U1", "publicKey": "K"}).public_key == "K"
        assert university_from_dict({"id": "U1", "public_key": "K"}).public_key == "K"

    def test_verified_defaults_false(self):
        assert university_from_dict({"id": "U1", "name": "X"}).verified is False


class TestLoadDirectories:
    def test_http_backend(self):
        settings = build_settings(
            {
                "directory": {
                    "backend": "http",
                    "certificate_service_url": "http://c",
                    "university_service_url": "http://u",
                },
            },
        ).directory
        certs, unis = load_directories(settings)
        assert isinstance(certs, HttpCertificateDirectory)
        assert isinstance(unis, HttpUniversityDirectory)

    def test_memory_backend_without_seed(self):
        settings = build_settings({"directory": {"backend": "memory"}}).directory
        certs, _ = load_directories(settings)
        assert isinstance(certs, InMemoryCertificateDirectory)
        assert len(certs) == 0

    def test_database_backend(self):
        settings = build_settings({"directory": {"backend": "database"}}).directory
        certs, unis = load_directories(settings, MagicMock())
        assert isinstance(certs, CertificateRepository)
        assert isinstance(unis, UniversityRepository)

    def test_database_backend_requires_database(self):
        settings = build_settings({"directory": {"backend": "database"}}).directory
        with pytest.raises(ValueError, match="requires a configured database"):
            load_directories(settings)

    def test_unknown_backend(self):
        settings = build_settings({"directory": {"backend": "ldap"}}).directory
        with pytest.raises(ValueError, match="Unknown directory backend"):
            load_directories(settings)
