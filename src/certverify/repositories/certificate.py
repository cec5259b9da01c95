"""Certificate repository backing the ``database`` directory."""

from __future__ import annotations

from pypgkit import BaseRepository, Database

from certverify.directory.base import CertificateDirectory
from certverify.directory.records import certificate_from_dict
from certverify.models import Certificate
from certverify.repositories._errors import store_errors


class CertificateRepository(BaseRepository[Certificate], CertificateDirectory):
    table_name = "certificates"
    primary_key = "id"

    def __init__(self, db: Database) -> None:
        super().__init__(db)
        self._database = db

    def _row_to_entity(self, row: dict) -> Certificate:
        return certificate_from_dict(row)

    def _entity_to_row(self, entity: Certificate) -> dict:
        return {
            "id": entity.id,
            "certificate_number": entity.certificate_number,
            "student_id": entity.student_id,
            "university_id": entity.university_id,
            "student_name": entity.student_name,
            "course_name": entity.course_name,
            "specialization": entity.specialization,
            "grade": entity.grade,
            "cgpa": entity.cgpa,
            "issue_date": entity.issue_date,
            "completion_date": entity.completion_date,
            "certificate_hash": entity.certificate_hash,
            "digital_signature": entity.digital_signature,
            "timestamp_token": entity.timestamp_token,
            "verification_code": entity.verification_code,
            "pdf_path": entity.pdf_path,
            "status": str(entity.status),
            "revocation_reason": entity.revocation_reason,
        }

    # -- CertificateDirectory ---------------------------------------------

    def get_by_id(self, certificate_id: str) -> Certificate | None:
        with store_errors("certificate lookup"):
            row = self._database.fetch_one(
                "SELECT * FROM certificates WHERE id = %s",
                (certificate_id,),
                as_dict=True,
            )
        return self._row_to_entity(row) if row else None

    def get_by_code(self, verification_code: str) -> Certificate | None:
        with store_errors("certificate lookup"):
            row = self._database.fetch_one(
                "SELECT * FROM certificates WHERE verification_code = %s",
                (verification_code,),
                as_dict=True,
            )
        return self._row_to_entity(row) if row else None
