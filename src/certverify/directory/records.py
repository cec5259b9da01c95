"""Build :mod:`certverify.models` entities from registry payloads.

Registry services answer in camelCase; seed files and database rows
use snake_case.  Both spellings are accepted.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from certverify.core.types import CertificateStatus
from certverify.models import Certificate, University

_EPOCH = datetime(1970, 1, 1)


def _pick(d: dict, snake: str, camel: str | None = None, default: Any = None) -> Any:  # noqa: ANN401
    if snake in d:
        return d[snake]
    if camel is not None and camel in d:
        return d[camel]
    return default


def _as_date(value: Any) -> date | None:  # noqa: ANN401
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def _as_datetime(value: Any) -> datetime:  # noqa: ANN401
    if value is None or value == "":
        return _EPOCH
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _as_status(value: Any) -> CertificateStatus | str:  # noqa: ANN401
    # An absent status never reads as active.
    if value is None or value == "":
        return ""
    try:
        return CertificateStatus(str(value).lower())
    except ValueError:
        return str(value)


def _as_float(value: Any) -> float | None:  # noqa: ANN401
    if value is None or value == "":
        return None
    return float(value)


def certificate_from_dict(d: dict) -> Certificate:
    """Build a :class:`Certificate` from a registry or seed mapping.

    Raises :class:`KeyError` or :class:`ValueError` on a payload that
    lacks mandatory fields or carries unparseable values.  A payload
    without ``status`` yields an empty status, which is never active.
    """
    return Certificate(
        id=str(d["id"]),
        certificate_number=_pick(d, "certificate_number", "certificateNumber", ""),
        university_id=str(_pick(d, "university_id", "universityId")),
        student_name=_pick(d, "student_name", "studentName", ""),
        course_name=_pick(d, "course_name", "courseName", ""),
        certificate_hash=_pick(d, "certificate_hash", "certificateHash", ""),
        digital_signature=_pick(d, "digital_signature", "digitalSignature", ""),
        verification_code=_pick(d, "verification_code", "verificationCode", ""),
        status=_as_status(_pick(d, "status")),
        student_id=_pick(d, "student_id", "studentId"),
        specialization=_pick(d, "specialization"),
        grade=_pick(d, "grade"),
        cgpa=_as_float(_pick(d, "cgpa")),
        issue_date=_as_date(_pick(d, "issue_date", "issueDate")),
        completion_date=_as_date(_pick(d, "completion_date", "completionDate")),
        timestamp_token=_pick(d, "timestamp_token", "timestampToken"),
        pdf_path=_pick(d, "pdf_path", "pdfPath"),
        revocation_reason=_pick(d, "revocation_reason", "revocationReason"),
        created_at=_as_datetime(_pick(d, "created_at", "createdAt")),
        updated_at=_as_datetime(_pick(d, "updated_at", "updatedAt")),
    )


def university_from_dict(d: dict) -> University:
    """Build a :class:`University` from a registry or seed mapping."""
    return University(
        id=str(d["id"]),
        name=d.get("name", ""),
        public_key=_pick(d, "public_key", "publicKey"),
        verified=bool(d.get("verified", False)),
        email=d.get("email"),
        address=d.get("address"),
        phone=d.get("phone"),
        created_at=_as_datetime(_pick(d, "created_at", "createdAt")),
        updated_at=_as_datetime(_pick(d, "updated_at", "updatedAt")),
    )
