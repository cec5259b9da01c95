"""Root conftest for the certverify test suite."""

from __future__ import annotations

import base64
import dataclasses
import logging
import sys
from pathlib import Path

import pytest
import yaml
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from certverify.core.crypto import compute_hash  # noqa: E402
from certverify.core.types import CertificateStatus  # noqa: E402
from certverify.models import Certificate, University  # noqa: E402

# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a config that needs neither a database nor the network."""
    return {
        "server": {"external_url": "https://verify.example.edu", "workers": 1},
        "directory": {"backend": "memory"},
        "audit": {"backend": "memory", "max_workers": 0, "retention_enabled": False},
        "security": {"rate_limits": {"enabled": False}},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# ConfigKit singleton and logger cleanup -- autouse so every test gets a
# fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the CertVerifyConfig singleton before and after every test."""
    from certverify.config.certverify_config import CertVerifyConfig

    CertVerifyConfig.reset()
    yield
    CertVerifyConfig.reset()


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo ``configure_logging`` so caplog keeps seeing certverify records."""
    yield
    for name in ("certverify", "certverify.audit"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Keys and signed certificates
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key) -> str:
    return (
        rsa_private_key.public_key()
        .public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )


@pytest.fixture(scope="session")
def other_public_key_pem() -> str:
    """A valid RSA key that did not sign anything."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return (
        key.public_key()
        .public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )


@pytest.fixture(scope="session")
def sign(rsa_private_key):
    """Return ``sign(text) -> base64`` using PKCS#1 v1.5 / SHA-256."""

    def _sign(text: str) -> str:
        raw = rsa_private_key.sign(text.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
        return base64.b64encode(raw).decode("ascii")

    return _sign


@pytest.fixture()
def university(public_key_pem) -> University:
    return University(id="U1", name="Example University", public_key=public_key_pem, verified=True)


@pytest.fixture()
def make_certificate(sign):
    """Factory for correctly signed certificates; keyword overrides win.

    Overriding ``certificate_hash`` keeps the original signature, which
    is how tests model a tampered record.
    """

    def _make(**overrides) -> Certificate:
        content = {
            "certificateNumber": "CERT-2024-0001",
            "universityId": overrides.get("university_id", "U1"),
            "studentName": "Ada Lovelace",
            "courseName": "BSc Computer Science",
        }
        digest = compute_hash(content)
        cert = Certificate(
            id="C1",
            certificate_number="CERT-2024-0001",
            university_id="U1",
            student_name="Ada Lovelace",
            course_name="BSc Computer Science",
            certificate_hash=digest,
            digital_signature=sign(digest),
            verification_code="ABC123XY",
            status=CertificateStatus.ACTIVE,
        )
        return dataclasses.replace(cert, **overrides)

    return _make


# ---------------------------------------------------------------------------
# Flask application wired to in-memory directories and audit store
# ---------------------------------------------------------------------------


@pytest.fixture()
def app_config(tmp_config_file):
    from certverify.config import CertVerifyConfig

    return CertVerifyConfig(config_file=tmp_config_file)


@pytest.fixture()
def audit_store():
    from certverify.audit import InMemoryAuditLogStore

    return InMemoryAuditLogStore()


@pytest.fixture()
def container(app_config, make_certificate, university, audit_store):
    from certverify.app.context import Container
    from certverify.directory.memory import (
        InMemoryCertificateDirectory,
        InMemoryUniversityDirectory,
    )

    c = Container(
        app_config.settings,
        certificates=InMemoryCertificateDirectory([make_certificate()]),
        universities=InMemoryUniversityDirectory([university]),
        audit_store=audit_store,
    )
    yield c
    c.shutdown()


@pytest.fixture()
def app(app_config, container):
    from certverify.app import create_app

    return create_app(app_config, container=container)


@pytest.fixture()
def client(app):
    return app.test_client()
