"""Abstract lookup interfaces used by the verification engine.

Contract shared by every implementation:

- A missing record is ``None``.
- A transport or store failure raises
  :class:`~certverify.core.errors.DirectoryUnavailableError`, never
  ``None``, so an outage cannot pass for "certificate does not exist".
- Lookups carry their own timeout; a timeout is a transport failure.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certverify.models import Certificate, University


class CertificateDirectory(abc.ABC):
    """Resolves issued certificates."""

    @abc.abstractmethod
    def get_by_id(self, certificate_id: str) -> Certificate | None:
        """Return the certificate with *certificate_id*, or ``None``."""

    @abc.abstractmethod
    def get_by_code(self, verification_code: str) -> Certificate | None:
        """Return the certificate whose public code is *verification_code*."""


class UniversityDirectory(abc.ABC):
    """Resolves issuing universities and their signing keys."""

    @abc.abstractmethod
    def get_by_id(self, university_id: str) -> University | None:
        """Return the university record, or ``None``."""

    def get_public_key(self, university_id: str) -> str | None:
        """Return the PEM public key of *university_id*, or ``None``.

        The default resolves the whole record; implementations with a
        cheaper key endpoint override it.
        """
        university = self.get_by_id(university_id)
        if university is None:
            return None
        return university.public_key or None
