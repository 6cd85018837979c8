from typing import List, Optional

import asyncpg

from src.core.access import ScopeKind, TripScope
from src.infra.database import DatabaseManager
from src.shared.errors import Conflict
from src.shared.models.student_dto import StudentDTO

STUDENT_COLUMNS = """
    s.id, s.first_name, s.last_name, s.admission, s.grade, s.stream, s.parent_id,
    s.pickup_latitude, s.pickup_longitude, s.created_at
"""

UPDATABLE_FIELDS = ("first_name", "last_name", "grade", "stream", "pickup_latitude", "pickup_longitude")


def _student_scope_clause(scope: TripScope, first_param: int) -> tuple[str, list]:
    """WHERE fragment over alias `s` for a student list scope."""
    if scope.kind == ScopeKind.ALL:
        return "TRUE", []
    if scope.kind == ScopeKind.PARENT:
        return f"s.parent_id IN (SELECT id FROM parents WHERE user_id = ${first_param})", [scope.user_id]
    if scope.kind == ScopeKind.DRIVER:
        clause = f"""EXISTS (
            SELECT 1 FROM trip_attendance_list tal
            JOIN trips t ON t.id = tal.trip_id
            JOIN drivers d ON d.id = t.driver_id
            WHERE tal.student_id = s.id AND d.user_id = ${first_param}
              AND t.status = ANY(${first_param + 1}::varchar[])
        )"""
        return clause, [scope.user_id, [status.value for status in scope.statuses]]
    return "FALSE", []


class StudentRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    async def list_students(self, scope: TripScope) -> List[StudentDTO]:
        where, params = _student_scope_clause(scope, 1)
        query = f"SELECT {STUDENT_COLUMNS} FROM students s WHERE {where} ORDER BY s.last_name, s.first_name"
        return [StudentDTO(**dict(r)) for r in await self.db.fetch(query, *params)]

    async def find_student(self, student_id: int, scope: TripScope) -> Optional[StudentDTO]:
        where, params = _student_scope_clause(scope, 2)
        query = f"SELECT {STUDENT_COLUMNS} FROM students s WHERE s.id = $1 AND {where}"
        record = await self.db.fetchrow(query, student_id, *params)
        return StudentDTO(**dict(record)) if record else None

    async def find_parent_user_id(self, student_id: int) -> tuple[bool, Optional[int]]:
        """(exists, parent's user id) for ownership checks."""
        record = await self.db.fetchrow(
            """
            SELECT s.id, p.user_id
            FROM students s LEFT JOIN parents p ON p.id = s.parent_id
            WHERE s.id = $1
            """,
            student_id,
        )
        if record is None:
            return False, None
        return True, record["user_id"]

    async def find_parent_id(self, user_id: int) -> Optional[int]:
        return await self.db.fetchval("SELECT id FROM parents WHERE user_id = $1", user_id)

    async def create_student(self, data: dict) -> StudentDTO:
        query = f"""
            INSERT INTO students AS s (first_name, last_name, admission, grade, stream, parent_id,
                                       pickup_latitude, pickup_longitude)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING {STUDENT_COLUMNS}
        """
        try:
            record = await self.db.fetchrow(
                query,
                data["first_name"], data["last_name"], data["admission"], data.get("grade"),
                data.get("stream"), data.get("parent_id"),
                data.get("pickup_latitude"), data.get("pickup_longitude"),
            )
        except asyncpg.UniqueViolationError:
            raise Conflict("Student with this admission number already exists")
        return StudentDTO(**dict(record))

    async def update_student(self, student_id: int, changes: dict) -> Optional[StudentDTO]:
        fields = [name for name in UPDATABLE_FIELDS if name in changes]
        if not fields:
            return await self.find_student(student_id, TripScope(kind=ScopeKind.ALL))

        assignments = ", ".join(f"{name} = ${i + 2}" for i, name in enumerate(fields))
        query = f"""
            UPDATE students s SET {assignments}
            WHERE s.id = $1
            RETURNING {STUDENT_COLUMNS}
        """
        record = await self.db.fetchrow(query, student_id, *(changes[name] for name in fields))
        return StudentDTO(**dict(record)) if record else None
