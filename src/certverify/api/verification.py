"""Certificate verification endpoints.

- ``POST /verify`` -- verify by certificateId or verificationCode
- ``GET /verify/{certificateId}`` -- quick verify by ID
- ``GET /verify/code/{verificationCode}`` -- quick verify by code
- ``POST /verify/bulk`` -- verify a batch
- ``POST /verify/signature`` -- check a signature without a certificate
- ``GET /verify/statistics`` -- per-day verification counters
- ``GET /verify/history/{certificateId}`` -- recent audit entries
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from certverify.api.schemas import (
    BULK_VALIDATOR,
    SIGNATURE_VALIDATOR,
    VERIFY_VALIDATOR,
    validate_body,
)
from certverify.api.serializers import (
    serialize_bulk,
    serialize_history,
    serialize_result,
    serialize_signature_result,
    serialize_statistics,
)
from certverify.app.context import get_container
from certverify.core.errors import FieldError, ValidationError
from certverify.models.verification import VerificationRequest
from certverify.services.verification import VerifierContext

verification_bp = Blueprint("verification", __name__)


def _context() -> VerifierContext:
    return VerifierContext(
        ip=request.remote_addr,
        info=request.headers.get("User-Agent"),
    )


def _json_body() -> object:
    # silent: a malformed body becomes a schema error, not an HTML 400
    return request.get_json(silent=True)


def _int_arg(name: str, default: int, maximum: int) -> int:
    """Read a positive integer query argument, clamped to ``[1, maximum]``."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        msg = f"Query parameter '{name}' must be an integer"
        raise ValidationError(msg, [FieldError(name, "must be an integer")]) from None
    return max(1, min(value, maximum))


@verification_bp.route("", methods=["POST"], endpoint="verify")
def verify():
    """POST /verify -- exactly one of certificateId / verificationCode."""
    body = validate_body(_json_body(), VERIFY_VALIDATOR)
    result = get_container().engine.verify(
        certificate_id=body.get("certificateId"),
        verification_code=body.get("verificationCode"),
        context=_context(),
    )
    return jsonify(serialize_result(result))


@verification_bp.route("/bulk", methods=["POST"], endpoint="bulk")
def verify_bulk():
    """POST /verify/bulk -- per-item verdicts in request order."""
    body = validate_body(_json_body(), BULK_VALIDATOR)
    items = [
        VerificationRequest(
            certificate_id=item.get("certificateId") or None,
            verification_code=item.get("verificationCode") or None,
        )
        for item in body["certificates"]
    ]
    batch = get_container().engine.verify_bulk(items, context=_context())
    return jsonify(serialize_bulk(batch))


@verification_bp.route("/signature", methods=["POST"], endpoint="signature")
def verify_signature():
    """POST /verify/signature -- signature over a hash, against a university key."""
    body = validate_body(_json_body(), SIGNATURE_VALIDATOR)
    result = get_container().engine.verify_signature_direct(
        body["certificateHash"],
        body["digitalSignature"],
        body["universityId"],
        context=_context(),
    )
    return jsonify(serialize_signature_result(result))


@verification_bp.route("/statistics", methods=["GET"], endpoint="statistics")
def statistics():
    """GET /verify/statistics?days=N"""
    limits = current_app.config["CERTVERIFY_SETTINGS"].verification
    days = _int_arg("days", limits.statistics_default_days, limits.statistics_max_days)
    rows = get_container().audit.statistics(days)
    return jsonify(serialize_statistics(days, rows))


@verification_bp.route("/history/<certificate_id>", methods=["GET"], endpoint="history")
def history(certificate_id: str):
    """GET /verify/history/{certificateId}?limit=N"""
    limits = current_app.config["CERTVERIFY_SETTINGS"].verification
    limit = _int_arg("limit", limits.history_default_limit, limits.history_max_limit)
    entries = get_container().audit.history(certificate_id, limit)
    return jsonify(serialize_history(certificate_id, entries))


@verification_bp.route("/code/<verification_code>", methods=["GET"], endpoint="by_code")
def verify_by_code(verification_code: str):
    """GET /verify/code/{verificationCode}"""
    result = get_container().engine.verify_by_code(verification_code, context=_context())
    return jsonify(serialize_result(result))


@verification_bp.route("/<certificate_id>", methods=["GET"], endpoint="by_id")
def verify_by_id(certificate_id: str):
    """GET /verify/{certificateId}"""
    result = get_container().engine.verify_by_id(certificate_id, context=_context())
    return jsonify(serialize_result(result))
