"""Domain exceptions raised below the HTTP layer.

The Flask error handlers in :mod:`certverify.app.errors` translate
these into problem documents; nothing here knows about HTTP.
"""

from __future__ import annotations

from dataclasses import dataclass


class CertVerifyError(Exception):
    """Base class for every domain error."""


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class ValidationError(CertVerifyError):
    """Malformed or contradictory input.

    Raised before any lookup happens, so it never produces an audit
    entry.
    """

    def __init__(self, detail: str, errors: list[FieldError] | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.errors = errors or []


class DirectoryError(CertVerifyError):
    """A certificate or university directory failed to answer.

    *retryable* mirrors whether repeating the same call may succeed
    (connection errors, 5xx responses).
    """

    def __init__(self, detail: str, *, retryable: bool = False) -> None:
        super().__init__(detail)
        self.detail = detail
        self.retryable = retryable


class DirectoryUnavailableError(DirectoryError):
    """Transport failure or timeout talking to a directory or store."""

    def __init__(self, detail: str, *, retryable: bool = True) -> None:
        super().__init__(detail, retryable=retryable)


class CryptoError(CertVerifyError):
    """Key or signature could not be parsed.

    Only raised inside :mod:`certverify.core.crypto`; the public
    functions there convert it to ``False``.
    """
