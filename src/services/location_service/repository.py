from typing import List, Optional

from src.infra.database import DatabaseManager
from src.shared.models.enums import TripStatus
from src.shared.models.location_dto import LocationSampleDTO

# Класс advisory-блокировок для записи точек рейса (второй ключ — trip_id)
LOCATION_LOCK_CLASS = 770_002


class LocationRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    async def append_location_sample(
        self,
        trip_id: int,
        driver_user_id: int,
        latitude: float,
        longitude: float,
        speed: Optional[float] = None,
        heading: Optional[float] = None,
    ) -> Optional[LocationSampleDTO]:
        """
        Добавляет точку в конец трека рейса.

        Вставка выполняется только если рейс IN_PROGRESS и назначен этому
        водителю (проверка повторяется в момент записи). Записи одного рейса
        сериализуются advisory-блокировкой, captured_at строго возрастает.

        Returns:
            Сохранённая точка или None, если рейс не активен / чужой
        """
        query = """
            INSERT INTO trip_locations (trip_id, driver_id, latitude, longitude, speed, heading, captured_at)
            SELECT t.id, d.id, $3, $4, $5, $6,
                   GREATEST(
                       clock_timestamp(),
                       COALESCE(
                           (SELECT MAX(l.captured_at) FROM trip_locations l WHERE l.trip_id = t.id)
                               + INTERVAL '1 microsecond',
                           clock_timestamp()
                       )
                   )
            FROM trips t
            JOIN drivers d ON d.id = t.driver_id
            WHERE t.id = $1 AND d.user_id = $2 AND t.status = $7
            RETURNING id, trip_id, driver_id, latitude, longitude, speed, heading, captured_at
        """
        async with self.db.transaction() as conn:
            await conn.execute("SELECT pg_advisory_xact_lock($1, $2)", LOCATION_LOCK_CLASS, trip_id)
            record = await conn.fetchrow(
                query,
                trip_id, driver_user_id, latitude, longitude, speed, heading,
                TripStatus.IN_PROGRESS.value,
            )
        return LocationSampleDTO(**dict(record)) if record else None

    async def list_recent_locations(self, trip_id: int, limit: int = 100) -> List[LocationSampleDTO]:
        """Последние limit точек рейса, новые первыми."""
        query = """
            SELECT id, trip_id, driver_id, latitude, longitude, speed, heading, captured_at
            FROM trip_locations
            WHERE trip_id = $1
            ORDER BY captured_at DESC, id DESC
            LIMIT $2
        """
        records = await self.db.fetch(query, trip_id, limit)
        return [LocationSampleDTO(**dict(r)) for r in records]

    async def latest_location(self, trip_id: int) -> Optional[LocationSampleDTO]:
        recent = await self.list_recent_locations(trip_id, limit=1)
        return recent[0] if recent else None
