"""Response serialization for verification resources.

Each function takes a model entity and produces a camelCase dictionary
suitable for ``flask.jsonify``.  Certificate payloads omit fields that
are internal to the registry (student ID, signature, PDF path,
timestamp token, record timestamps).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from certverify.models.certificate import Certificate
    from certverify.models.university import University
    from certverify.models.verification import (
        BulkVerificationResult,
        DailyStatistics,
        VerificationLogEntry,
        VerificationResult,
    )


def _iso(value: Any) -> str | None:
    return value.isoformat() if value is not None else None


def _value(value: Any) -> Any:
    return getattr(value, "value", value)


def serialize_certificate(certificate: Certificate) -> dict:
    """Public view of a certificate."""
    result: dict[str, Any] = {
        "id": certificate.id,
        "certificateNumber": certificate.certificate_number,
        "universityId": certificate.university_id,
        "studentName": certificate.student_name,
        "courseName": certificate.course_name,
        "specialization": certificate.specialization,
        "grade": certificate.grade,
        "cgpa": certificate.cgpa,
        "issueDate": _iso(certificate.issue_date),
        "completionDate": _iso(certificate.completion_date),
        "certificateHash": certificate.certificate_hash,
        "verificationCode": certificate.verification_code,
        "status": _value(certificate.status),
    }
    if certificate.revocation_reason:
        result["revocationReason"] = certificate.revocation_reason
    return result


def serialize_university(university: University) -> dict:
    return {
        "id": university.id,
        "name": university.name,
        "verified": university.verified,
    }


def serialize_result(result: VerificationResult) -> dict:
    """Serialize a single verification verdict."""
    body: dict[str, Any] = {
        "valid": result.valid,
        "verificationMethod": _value(result.method),
        "timestamp": result.timestamp.isoformat(),
    }
    if result.reason is not None:
        body["reason"] = result.reason
    if result.certificate is not None:
        body["certificate"] = serialize_certificate(result.certificate)
    if result.university is not None:
        body["university"] = serialize_university(result.university)
    return body


def serialize_signature_result(result: VerificationResult) -> dict:
    body: dict[str, Any] = {
        "valid": result.valid,
        "verificationMethod": _value(result.method),
        "timestamp": result.timestamp.isoformat(),
    }
    if result.university is not None:
        body["universityName"] = result.university.name
    if result.reason is not None:
        body["reason"] = result.reason
    return body


def serialize_bulk_item(result: VerificationResult) -> dict:
    """One bulk result, echoing the lookup key it was asked for."""
    body: dict[str, Any] = {}
    request = result.request
    if request is not None:
        if request.certificate_id is not None:
            body["certificateId"] = request.certificate_id
        if request.verification_code is not None:
            body["verificationCode"] = request.verification_code
    body["valid"] = result.valid
    if result.reason is not None:
        body["reason"] = result.reason
    if result.error:
        body["error"] = True
    if result.certificate is not None:
        body["certificate"] = serialize_certificate(result.certificate)
    return body


def serialize_bulk(batch: BulkVerificationResult) -> dict:
    return {
        "totalRequested": batch.total_requested,
        "validCertificates": batch.valid_count,
        "invalidCertificates": batch.invalid_count,
        "results": [serialize_bulk_item(r) for r in batch.results],
    }


def serialize_statistics(days: int, rows: list[DailyStatistics]) -> dict:
    return {
        "periodDays": days,
        "statistics": [
            {
                "date": row.day.isoformat(),
                "totalVerifications": row.total,
                "validCount": row.valid_count,
                "invalidCount": row.invalid_count,
                "errorCount": row.error_count,
                "avgResponseTimeMs": (
                    round(row.avg_response_time_ms, 2)
                    if row.avg_response_time_ms is not None
                    else None
                ),
            }
            for row in rows
        ],
    }


def serialize_log_entry(entry: VerificationLogEntry) -> dict:
    return {
        "id": str(entry.id),
        "certificateId": entry.certificate_id,
        "verificationMethod": _value(entry.verification_method),
        "result": _value(entry.result),
        "verifierIp": entry.verifier_ip,
        "verifierInfo": entry.verifier_info,
        "errorMessage": entry.error_message,
        "responseTimeMs": entry.response_time_ms,
        "verifiedAt": entry.timestamp.isoformat(),
    }


def serialize_history(certificate_id: str, entries: list[VerificationLogEntry]) -> dict:
    return {
        "certificateId": certificate_id,
        "totalRecords": len(entries),
        "history": [serialize_log_entry(e) for e in entries],
    }
