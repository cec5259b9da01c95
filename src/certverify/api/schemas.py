"""JSON Schemas for verification request bodies.

Structural checks only (types, patterns, array bounds).  The
certificateId/verificationCode exclusivity rule and the bulk size limit
belong to the engine so that every caller gets them.
"""

from __future__ import annotations

from typing import Any

from jsonschema import Draft202012Validator

from certverify.core.errors import FieldError, ValidationError

VERIFICATION_CODE_PATTERN = "^[A-Z0-9]{6,12}$"
CERTIFICATE_HASH_PATTERN = "^[0-9a-fA-F]{64}$"
BASE64_PATTERN = "^[A-Za-z0-9+/]+={0,2}$"

_LOOKUP_PROPERTIES = {
    "certificateId": {"type": "string", "minLength": 1, "maxLength": 128},
    "verificationCode": {"type": "string", "pattern": VERIFICATION_CODE_PATTERN},
}

VERIFY_REQUEST = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "properties": dict(_LOOKUP_PROPERTIES),
}

BULK_REQUEST = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["certificates"],
    "properties": {
        "certificates": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "properties": dict(_LOOKUP_PROPERTIES),
            },
        },
    },
}

SIGNATURE_REQUEST = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["certificateHash", "digitalSignature", "universityId"],
    "properties": {
        "certificateHash": {"type": "string", "pattern": CERTIFICATE_HASH_PATTERN},
        "digitalSignature": {"type": "string", "pattern": BASE64_PATTERN},
        "universityId": {"type": "string", "minLength": 1, "maxLength": 128},
    },
}

VERIFY_VALIDATOR = Draft202012Validator(VERIFY_REQUEST)
BULK_VALIDATOR = Draft202012Validator(BULK_REQUEST)
SIGNATURE_VALIDATOR = Draft202012Validator(SIGNATURE_REQUEST)


def _field_name(error: Any) -> str:
    path = list(error.absolute_path)
    if error.validator == "required":
        # The missing key is only named in the message
        missing = error.message.split("'")[1] if "'" in error.message else ""
        path.append(missing)
    return ".".join(str(p) for p in path) or "body"


def validate_body(body: Any, validator: Draft202012Validator) -> dict:
    """Return *body* unchanged or raise :class:`ValidationError`.

    Every schema violation is reported, sorted by field path.
    """
    if not isinstance(body, dict):
        raise ValidationError(
            "Request body must be a JSON object",
            [FieldError("body", "must be a JSON object")],
        )

    errors = sorted(validator.iter_errors(body), key=lambda e: list(map(str, e.absolute_path)))
    if errors:
        raise ValidationError(
            "Request body failed validation",
            [FieldError(_field_name(e), e.message) for e in errors],
        )
    return body
