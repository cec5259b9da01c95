"""Certificate entity as resolved from a certificate directory."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from certverify.core.types import CertificateStatus

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class Certificate:
    id: str
    certificate_number: str
    university_id: str
    student_name: str
    course_name: str
    certificate_hash: str
    digital_signature: str
    verification_code: str
    status: CertificateStatus | str
    student_id: str | None = None
    specialization: str | None = None
    grade: str | None = None
    cgpa: float | None = None
    issue_date: date | None = None
    completion_date: date | None = None
    timestamp_token: str | None = None
    pdf_path: str | None = None
    revocation_reason: str | None = None
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH

    def content_fields(self) -> dict:
        """Fields covered by :attr:`certificate_hash` at issuance."""
        return {
            "certificateNumber": self.certificate_number,
            "studentId": self.student_id,
            "universityId": self.university_id,
            "studentName": self.student_name,
            "courseName": self.course_name,
            "specialization": self.specialization,
            "grade": self.grade,
            "cgpa": self.cgpa,
            "issueDate": self.issue_date,
            "completionDate": self.completion_date,
        }
