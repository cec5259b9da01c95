"""In-process directories for development and tests.

Seed file format (YAML or JSON)::

    universities:
      - id: U1
        name: Example University
        verified: true
        public_key: |
          -----BEGIN PUBLIC KEY-----
          ...
    certificates:
      - id: C1
        university_id: U1
        verification_code: ABC123
        certificate_hash: 9f86d0...
        digital_signature: MEUCIQ...
        status: active
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from certverify.directory.base import CertificateDirectory, UniversityDirectory
from certverify.directory.records import certificate_from_dict, university_from_dict

if TYPE_CHECKING:
    from collections.abc import Iterable

    from certverify.models import Certificate, University

log = logging.getLogger(__name__)


class InMemoryCertificateDirectory(CertificateDirectory):
    """Thread-safe certificate map keyed by ID and by verification code."""

    def __init__(self, certificates: Iterable[Certificate] = ()) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[str, Certificate] = {}
        self._by_code: dict[str, Certificate] = {}
        for cert in certificates:
            self.add(cert)

    def add(self, certificate: Certificate) -> None:
        """Insert or replace *certificate*.

        Raises :class:`ValueError` when another certificate already holds
        the same verification code.
        """
        with self._lock:
            owner = self._by_code.get(certificate.verification_code)
            if owner is not None and owner.id != certificate.id:
                msg = (
                    f"Verification code {certificate.verification_code!r} already "
                    f"belongs to certificate {owner.id}"
                )
                raise ValueError(msg)
            previous = self._by_id.get(certificate.id)
            if previous is not None:
                self._by_code.pop(previous.verification_code, None)
            self._by_id[certificate.id] = certificate
            if certificate.verification_code:
                self._by_code[certificate.verification_code] = certificate

    def get_by_id(self, certificate_id: str) -> Certificate | None:
        with self._lock:
            return self._by_id.get(certificate_id)

    def get_by_code(self, verification_code: str) -> Certificate | None:
        with self._lock:
            return self._by_code.get(verification_code)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)


class InMemoryUniversityDirectory(UniversityDirectory):
    """Thread-safe university map keyed by ID."""

    def __init__(self, universities: Iterable[University] = ()) -> None:
        self._lock = threading.Lock()
        self._by_id: dict[str, University] = {}
        for uni in universities:
            self.add(uni)

    def add(self, university: University) -> None:
        with self._lock:
            self._by_id[university.id] = university

    def get_by_id(self, university_id: str) -> University | None:
        with self._lock:
            return self._by_id.get(university_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)


def load_seed_file(
    path: str | Path,
) -> tuple[InMemoryCertificateDirectory, InMemoryUniversityDirectory]:
    """Read a YAML/JSON seed file into a pair of in-memory directories."""
    source = Path(path)
    with source.open(encoding="utf-8") as f:
        if source.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f) or {}
        else:
            data = json.load(f)

    universities = InMemoryUniversityDirectory(
        university_from_dict(u) for u in data.get("universities", [])
    )
    certificates = InMemoryCertificateDirectory(
        certificate_from_dict(c) for c in data.get("certificates", [])
    )
    log.info(
        "Loaded %d certificates and %d universities from %s",
        len(certificates),
        len(universities),
        source,
    )
    return certificates, universities
