"""Signature and content-hash checks for issued certificates.

Universities sign the hex content hash of a certificate (its UTF-8
bytes) with RSASSA-PKCS1-v1_5 over SHA-256.  :func:`verify_signature`
is fail-closed: a malformed key, a malformed signature and a wrong
signature are all reported as ``False``.

Usage::

    from certverify.core.crypto import compute_hash, verify_signature

    digest = compute_hash({"studentName": "Ada", "grade": "A"})
    ok = verify_signature(digest, signature_b64, university.public_key)
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from certverify.core.errors import CryptoError

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _load_rsa_public_key(public_key_pem: str) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_pem_public_key(public_key_pem.encode("utf-8"))
    except (ValueError, TypeError, UnsupportedAlgorithm, AttributeError) as exc:
        msg = f"Cannot parse public key: {exc}"
        raise CryptoError(msg) from exc
    if not isinstance(key, rsa.RSAPublicKey):
        msg = f"Expected an RSA public key, got {type(key).__name__}"
        raise CryptoError(msg)
    return key


def _decode_signature(signature_b64: str) -> bytes:
    try:
        raw = base64.b64decode(signature_b64, validate=True)
    except (binascii.Error, ValueError, TypeError) as exc:
        msg = f"Signature is not valid base64: {exc}"
        raise CryptoError(msg) from exc
    if not raw:
        msg = "Signature is empty"
        raise CryptoError(msg)
    return raw


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def verify_signature(data: str | bytes, signature_b64: str, public_key_pem: str) -> bool:
    """Return ``True`` iff *signature_b64* signs *data* under *public_key_pem*.

    *data* is signed as its UTF-8 bytes when given as a string.  Never
    raises: every parsing or verification failure returns ``False``.
    """
    payload = data.encode("utf-8") if isinstance(data, str) else data
    try:
        key = _load_rsa_public_key(public_key_pem)
        signature = _decode_signature(signature_b64)
        key.verify(signature, payload, padding.PKCS1v15(), hashes.SHA256())
    except InvalidSignature:
        log.debug("Signature does not match data")
        return False
    except CryptoError as exc:
        log.debug("Signature check rejected malformed input: %s", exc)
        return False
    except (ValueError, TypeError) as exc:
        log.debug("Signature check failed: %s", exc)
        return False
    return True


def _json_default(value: Any) -> Any:  # noqa: ANN401
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    return str(value)


def canonicalize(record: dict[str, Any]) -> bytes:
    """Serialise *record* deterministically.

    Keys are sorted at every nesting level and no insignificant
    whitespace is emitted, so two dicts with the same items in a
    different order produce identical bytes.
    """
    return json.dumps(
        record,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    ).encode("utf-8")


def compute_hash(record: dict[str, Any]) -> str:
    """SHA-256 hex digest of the canonical form of *record*."""
    return hashlib.sha256(canonicalize(record)).hexdigest()


def hash_matches(record: dict[str, Any], expected_hex: str) -> bool:
    """Recompute the content hash of *record* and compare to *expected_hex*."""
    if not expected_hex:
        return False
    expected = expected_hex.strip().lower().encode("utf-8")
    return hmac.compare_digest(compute_hash(record).encode("ascii"), expected)
