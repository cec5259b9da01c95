"""University repository backing the ``database`` directory."""

from __future__ import annotations

from pypgkit import BaseRepository, Database

from certverify.directory.base import UniversityDirectory
from certverify.directory.records import university_from_dict
from certverify.models import University
from certverify.repositories._errors import store_errors


class UniversityRepository(BaseRepository[University], UniversityDirectory):
    table_name = "universities"
    primary_key = "id"

    def __init__(self, db: Database) -> None:
        super().__init__(db)
        self._database = db

    def _row_to_entity(self, row: dict) -> University:
        return university_from_dict(row)

    def _entity_to_row(self, entity: University) -> dict:
        return {
            "id": entity.id,
            "name": entity.name,
            "email": entity.email,
            "address": entity.address,
            "phone": entity.phone,
            "public_key": entity.public_key,
            "verified": entity.verified,
        }

    def get_by_id(self, university_id: str) -> University | None:
        with store_errors("university lookup"):
            row = self._database.fetch_one(
                "SELECT * FROM universities WHERE id = %s",
                (university_id,),
                as_dict=True,
            )
        return self._row_to_entity(row) if row else None

    def get_public_key(self, university_id: str) -> str | None:
        with store_errors("university public key lookup"):
            value = self._database.fetch_value(
                "SELECT public_key FROM universities WHERE id = %s",
                (university_id,),
            )
        return value or None
