"""Verification log repository (table ``verification_logs``)."""

from __future__ import annotations

from pypgkit import BaseRepository, Database

from certverify.audit.base import AuditLogStore
from certverify.core.types import VerificationMethod, VerificationOutcome
from certverify.models import DailyStatistics, VerificationLogEntry


class VerificationLogRepository(BaseRepository[VerificationLogEntry], AuditLogStore):
    table_name = "verification_logs"
    primary_key = "id"

    def __init__(self, db: Database) -> None:
        super().__init__(db)
        self._database = db

    def _row_to_entity(self, row: dict) -> VerificationLogEntry:
        return VerificationLogEntry(
            id=row["id"],
            certificate_id=row["certificate_id"],
            lookup_key=row.get("lookup_key"),
            verification_method=VerificationMethod(row["verification_method"]),
            verifier_ip=row.get("verifier_ip"),
            verifier_info=row.get("verifier_info"),
            result=VerificationOutcome(row["result"]),
            error_message=row.get("error_message"),
            response_time_ms=row["response_time_ms"],
            timestamp=row["verified_at"],
        )

    def _entity_to_row(self, entity: VerificationLogEntry) -> dict:
        return {
            "id": entity.id,
            "certificate_id": entity.certificate_id,
            "lookup_key": entity.lookup_key,
            "verification_method": entity.verification_method.value,
            "verifier_ip": entity.verifier_ip,
            "verifier_info": entity.verifier_info,
            "result": entity.result.value,
            "error_message": entity.error_message,
            "response_time_ms": entity.response_time_ms,
            "verified_at": entity.timestamp,
        }

    # -- AuditLogStore ------------------------------------------------------

    def insert(self, entry: VerificationLogEntry) -> None:
        self.create(entry)

    def statistics(self, since_days: int) -> list[DailyStatistics]:
        rows = self._database.fetch_all(
            "SELECT (verified_at AT TIME ZONE 'UTC')::date AS day, "
            "  COUNT(*) AS total, "
            "  COUNT(*) FILTER (WHERE result = 'valid') AS valid_count, "
            "  COUNT(*) FILTER (WHERE result = 'invalid') AS invalid_count, "
            "  COUNT(*) FILTER (WHERE result = 'error') AS error_count, "
            "  AVG(response_time_ms) AS avg_response_time_ms "
            "FROM verification_logs "
            "WHERE verified_at >= now() - make_interval(days => %s) "
            "GROUP BY day "
            "ORDER BY day DESC",
            (since_days,),
            as_dict=True,
        )
        return [
            DailyStatistics(
                day=r["day"],
                total=r["total"],
                valid_count=r["valid_count"],
                invalid_count=r["invalid_count"],
                error_count=r["error_count"],
                avg_response_time_ms=(
                    float(r["avg_response_time_ms"])
                    if r["avg_response_time_ms"] is not None
                    else None
                ),
            )
            for r in rows
        ]

    def find_by_certificate(
        self,
        certificate_id: str,
        limit: int,
    ) -> list[VerificationLogEntry]:
        rows = self._database.fetch_all(
            "SELECT * FROM verification_logs "
            "WHERE certificate_id = %s "
            "ORDER BY verified_at DESC "
            "LIMIT %s",
            (certificate_id, limit),
            as_dict=True,
        )
        return [self._row_to_entity(r) for r in rows]

    def delete_older_than(self, days: int) -> int:
        return self._database.execute(
            "DELETE FROM verification_logs WHERE verified_at < now() - make_interval(days => %s)",
            (days,),
        )
