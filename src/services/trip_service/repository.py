from datetime import date, datetime, timedelta, timezone
from typing import Optional, List, Sequence

from src.core.access.policy import PassengerLink, ScopeKind, TripAccess, TripScope
from src.infra.database import DatabaseManager
from src.services.trip_service.state_machine import TripStateMachine
from src.shared.models.admin_dto import BusDTO, DriverDTO, RouteDTO
from src.shared.models.enums import TripStatus
from src.shared.models.trip_dto import (
    AttendanceDTO,
    FeedbackDTO,
    LocationStats,
    PassengerDTO,
    TripDTO,
    TripDetailDTO,
)

TRIP_COLUMNS = """
    t.id, t.trip_label, t.trip_name, t.trip_date, t.status, t.bus_id, t.route_id,
    t.driver_id, t.started_at, t.stopped_at, t.created_at
"""


def _scope_clause(scope: TripScope, first_param: int) -> tuple[str, list]:
    """Translates a TripScope into a WHERE fragment over alias `t`."""
    clauses: List[str] = []
    params: list = []
    idx = first_param

    if scope.kind == ScopeKind.NONE:
        return "FALSE", []

    if scope.kind == ScopeKind.DRIVER:
        clauses.append(f"t.driver_id IN (SELECT id FROM drivers WHERE user_id = ${idx})")
        params.append(scope.user_id)
        idx += 1
    elif scope.kind == ScopeKind.PARENT:
        clauses.append(
            f"""EXISTS (
                SELECT 1 FROM trip_attendance_list tal
                JOIN students s ON s.id = tal.student_id
                JOIN parents p ON p.id = s.parent_id
                WHERE tal.trip_id = t.id AND p.user_id = ${idx}
            )"""
        )
        params.append(scope.user_id)
        idx += 1

    if scope.statuses:
        clauses.append(f"t.status = ANY(${idx}::varchar[])")
        params.append([s.value for s in scope.statuses])

    return (" AND ".join(clauses) or "TRUE"), params


class TripRepository:
    """Trip store: trips, attendance list, attendance and feedback."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_trip_access(self, trip_id: int) -> Optional[TripAccess]:
        """Trip status, assigned driver's user id and passenger/parent links."""
        query = """
            SELECT t.id, t.status, t.trip_date, d.user_id AS driver_user_id,
                   COALESCE(
                       array_agg(s.id ORDER BY s.id) FILTER (WHERE s.id IS NOT NULL), '{}'
                   ) AS student_ids,
                   COALESCE(
                       array_agg(p.user_id ORDER BY s.id) FILTER (WHERE s.id IS NOT NULL), '{}'
                   ) AS parent_user_ids
            FROM trips t
            JOIN drivers d ON d.id = t.driver_id
            LEFT JOIN trip_attendance_list tal ON tal.trip_id = t.id
            LEFT JOIN students s ON s.id = tal.student_id
            LEFT JOIN parents p ON p.id = s.parent_id
            WHERE t.id = $1
            GROUP BY t.id, d.user_id
        """
        row = await self.db.fetchrow(query, trip_id)
        if not row:
            return None
        passengers = tuple(
            PassengerLink(student_id=sid, parent_user_id=puid)
            for sid, puid in zip(row["student_ids"], row["parent_user_ids"])
        )
        return TripAccess(
            trip_id=row["id"],
            status=TripStatus(row["status"]),
            driver_user_id=row["driver_user_id"],
            trip_date=row["trip_date"],
            passengers=passengers,
        )

    async def find_trip_by_id(self, trip_id: int) -> Optional[TripDetailDTO]:
        """Trip with bus, route, driver, passengers and attendance included."""
        row = await self.db.fetchrow(f"SELECT {TRIP_COLUMNS} FROM trips t WHERE t.id = $1", trip_id)
        if not row:
            return None

        trip = TripDetailDTO(**dict(row))
        trip.bus = await self.find_bus(row["bus_id"])
        trip.route = await self.find_route(row["route_id"])
        trip.driver = await self.find_driver(row["driver_id"])
        trip.passengers = (await self.list_passengers([trip_id])).get(trip_id, [])
        trip.attendance = await self.list_attendance(trip_id)
        return trip

    async def list_trips_for_user(
        self,
        scope: TripScope,
        trip_date: Optional[date] = None,
    ) -> List[TripDTO]:
        """Role-scoped trips, newest trip_date first; optional single-day filter."""
        where, params = _scope_clause(scope, 1)
        if trip_date is not None:
            day_start = datetime(trip_date.year, trip_date.month, trip_date.day, tzinfo=timezone.utc)
            where += f" AND t.trip_date >= ${len(params) + 1} AND t.trip_date < ${len(params) + 2}"
            params.extend([day_start, day_start + timedelta(days=1)])

        query = f"SELECT {TRIP_COLUMNS} FROM trips t WHERE {where} ORDER BY t.trip_date DESC, t.id DESC"
        rows = await self.db.fetch(query, *params)
        return [TripDTO(**dict(row)) for row in rows]

    async def list_passengers(self, trip_ids: Sequence[int]) -> dict[int, List[PassengerDTO]]:
        if not trip_ids:
            return {}
        query = """
            SELECT tal.trip_id, s.id AS student_id, s.first_name, s.last_name,
                   s.admission, s.grade, s.parent_id
            FROM trip_attendance_list tal
            JOIN students s ON s.id = tal.student_id
            WHERE tal.trip_id = ANY($1::int[])
            ORDER BY s.last_name, s.first_name
        """
        result: dict[int, List[PassengerDTO]] = {trip_id: [] for trip_id in trip_ids}
        for row in await self.db.fetch(query, list(trip_ids)):
            data = dict(row)
            result[data.pop("trip_id")].append(PassengerDTO(**data))
        return result

    async def list_attendance(self, trip_id: int) -> List[AttendanceDTO]:
        rows = await self.db.fetch(
            "SELECT * FROM attendance WHERE trip_id = $1 ORDER BY timestamp", trip_id
        )
        return [AttendanceDTO(**dict(row)) for row in rows]

    async def find_bus(self, bus_id: int) -> Optional[BusDTO]:
        row = await self.db.fetchrow("SELECT * FROM buses WHERE id = $1", bus_id)
        return BusDTO(**dict(row)) if row else None

    async def find_route(self, route_id: int) -> Optional[RouteDTO]:
        row = await self.db.fetchrow("SELECT * FROM routes WHERE id = $1", route_id)
        return RouteDTO(**dict(row)) if row else None

    async def find_driver(self, driver_id: int) -> Optional[DriverDTO]:
        query = """
            SELECT d.id, d.user_id, d.first_name, d.last_name, u.email, u.phone
            FROM drivers d JOIN users u ON u.id = d.user_id
            WHERE d.id = $1
        """
        row = await self.db.fetchrow(query, driver_id)
        return DriverDTO(**dict(row)) if row else None

    async def find_missing_students(self, student_ids: Sequence[int]) -> List[int]:
        if not student_ids:
            return []
        rows = await self.db.fetch("SELECT id FROM students WHERE id = ANY($1::int[])", list(student_ids))
        existing = {row["id"] for row in rows}
        return sorted(set(student_ids) - existing)

    async def find_parent_id(self, user_id: int) -> Optional[int]:
        return await self.db.fetchval("SELECT id FROM parents WHERE user_id = $1", user_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_trip(
        self,
        trip_label: str,
        trip_name: str,
        trip_date: datetime,
        bus_id: int,
        route_id: int,
        driver_id: int,
        student_ids: Sequence[int],
    ) -> TripDTO:
        """Inserts the trip and its attendance list in one transaction."""
        async with self.db.transaction() as connection:
            row = await connection.fetchrow(
                f"""
                INSERT INTO trips AS t (trip_label, trip_name, trip_date, status, bus_id, route_id, driver_id)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING {TRIP_COLUMNS}
                """,
                trip_label, trip_name, trip_date, TripStatus.SCHEDULED.value, bus_id, route_id, driver_id,
            )
            if student_ids:
                await connection.executemany(
                    """
                    INSERT INTO trip_attendance_list (trip_id, student_id)
                    VALUES ($1, $2)
                    ON CONFLICT DO NOTHING
                    """,
                    [(row["id"], student_id) for student_id in dict.fromkeys(student_ids)],
                )
        return TripDTO(**dict(row))

    async def update_trip_status(
        self,
        trip_id: int,
        status: TripStatus,
        timestamp_field: str,
        expected_status: TripStatus,
    ) -> Optional[TripDTO]:
        """
        Compare-and-swap on status: the row changes only if its current
        status equals expected_status. Returns None when the guard fails.
        """
        if timestamp_field not in TripStateMachine.TIMESTAMP_FIELDS:
            raise ValueError(f"Unknown timestamp field: {timestamp_field}")

        query = f"""
            UPDATE trips t
            SET status = $2, {timestamp_field} = NOW()
            WHERE t.id = $1 AND t.status = $3
            RETURNING {TRIP_COLUMNS}
        """
        row = await self.db.fetchrow(query, trip_id, status.value, expected_status.value)
        return TripDTO(**dict(row)) if row else None

    async def upsert_attendance(
        self,
        trip_id: int,
        student_id: int,
        status: str,
        marked_by: int,
    ) -> AttendanceDTO:
        query = """
            INSERT INTO attendance (trip_id, student_id, status, timestamp, marked_by)
            VALUES ($1, $2, $3, NOW(), $4)
            ON CONFLICT (trip_id, student_id)
            DO UPDATE SET status = EXCLUDED.status,
                          timestamp = EXCLUDED.timestamp,
                          marked_by = EXCLUDED.marked_by
            RETURNING *
        """
        row = await self.db.fetchrow(query, trip_id, student_id, status, marked_by)
        return AttendanceDTO(**dict(row))

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def feedback_exists(self, trip_id: int, parent_id: int, student_id: Optional[int]) -> bool:
        query = """
            SELECT EXISTS (
                SELECT 1 FROM trip_feedback
                WHERE trip_id = $1 AND parent_id = $2
                  AND COALESCE(student_id, 0) = COALESCE($3::int, 0)
            )
        """
        return bool(await self.db.fetchval(query, trip_id, parent_id, student_id))

    async def insert_feedback(
        self,
        trip_id: int,
        parent_id: int,
        student_id: Optional[int],
        rating: int,
        comment: Optional[str],
    ) -> Optional[FeedbackDTO]:
        """Returns None if feedback for (trip, parent, student) already exists."""
        query = """
            INSERT INTO trip_feedback (trip_id, parent_id, student_id, rating, comment)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (trip_id, parent_id, COALESCE(student_id, 0)) DO NOTHING
            RETURNING *
        """
        row = await self.db.fetchrow(query, trip_id, parent_id, student_id, rating, comment)
        return FeedbackDTO(**dict(row)) if row else None

    async def list_feedback(self, trip_id: int, parent_id: Optional[int] = None) -> List[FeedbackDTO]:
        if parent_id is None:
            rows = await self.db.fetch(
                "SELECT * FROM trip_feedback WHERE trip_id = $1 ORDER BY created_at DESC", trip_id
            )
        else:
            rows = await self.db.fetch(
                "SELECT * FROM trip_feedback WHERE trip_id = $1 AND parent_id = $2 ORDER BY created_at DESC",
                trip_id, parent_id,
            )
        return [FeedbackDTO(**dict(row)) for row in rows]

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    async def get_location_stats(self, trip_id: int) -> LocationStats:
        query = """
            SELECT COUNT(*) AS sample_count,
                   MIN(captured_at) AS first_captured_at,
                   MAX(captured_at) AS last_captured_at
            FROM trip_locations WHERE trip_id = $1
        """
        row = await self.db.fetchrow(query, trip_id)
        return LocationStats(**dict(row)) if row else LocationStats()
