# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("REALTIME_BACKPLANE", "local")

from src.core.access import PassengerLink, ScopeKind, TripAccess, TripScope  # noqa: E402
from src.shared.models.admin_dto import BusDTO, DriverDTO, RouteDTO  # noqa: E402
from src.shared.models.enums import TripStatus, UserRole  # noqa: E402
from src.shared.models.location_dto import LocationSampleDTO  # noqa: E402
from src.shared.models.trip_dto import (  # noqa: E402
    AttendanceDTO,
    FeedbackDTO,
    LocationStats,
    PassengerDTO,
    TripDetailDTO,
    TripDTO,
)
from src.shared.models.user_dto import AuthUser  # noqa: E402


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "PROJECT_NAME": "school_bus_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FORMAT": "colored",
        "API_HOST": "127.0.0.1",
        "API_PORT": 8001,
        "JWT_ALGORITHM": "HS256",
        "ACCESS_TOKEN_EXPIRE_DAYS": 3,
        "DB_HOST": "localhost",
        "DB_PORT": 5432,
        "DB_NAME": "school_bus_test",
        "DB_USER": "postgres",
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_NAMESPACE": "school_bus_test",
        "RABBITMQ_HOST": "localhost",
        "RABBITMQ_EXCHANGE": "school_bus.test",
        "REALTIME_CHANNEL_PREFIX": "rooms:",
        "LATEST_LOCATION_TTL": 120,
        "LOCATION_HISTORY_LIMIT": 50,
        "MESSAGING_RECENT_TRIP_DAYS": 5,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.is_connected = True
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model = AsyncMock(return_value=True)
    redis.publish = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


# =============================================================================
# ПОЛЬЗОВАТЕЛИ
# =============================================================================

@pytest.fixture
def admin() -> AuthUser:
    return AuthUser(id=1, role=UserRole.ADMIN)


@pytest.fixture
def driver() -> AuthUser:
    return AuthUser(id=10, role=UserRole.DRIVER)


@pytest.fixture
def other_driver() -> AuthUser:
    return AuthUser(id=11, role=UserRole.DRIVER)


@pytest.fixture
def parent() -> AuthUser:
    return AuthUser(id=20, role=UserRole.PARENT)


@pytest.fixture
def other_parent() -> AuthUser:
    return AuthUser(id=21, role=UserRole.PARENT)


# =============================================================================
# IN-MEMORY ХРАНИЛИЩЕ РЕЙСОВ
# =============================================================================

class FakeTripStore:
    """
    Хранилище рейсов в памяти с тем же контрактом, что TripRepository
    и LocationRepository. Условные записи выполняются без await между
    проверкой и записью, как атомарный UPDATE ... WHERE в PostgreSQL.
    """

    def __init__(self) -> None:
        self.trips: dict[int, dict[str, Any]] = {}
        self.attendance: dict[tuple[int, int], AttendanceDTO] = {}
        self.feedback: list[FeedbackDTO] = []
        self.locations: list[LocationSampleDTO] = []
        # user_id родителя -> parents.id
        self.parent_ids: dict[int, int] = {}
        self.driver_ids: dict[int, int] = {}
        self.buses: dict[int, BusDTO] = {1: BusDTO(id=1, number_plate="AB123", capacity=40)}
        self.routes: dict[int, RouteDTO] = {1: RouteDTO(id=1, route_name="North loop")}
        self.drivers: dict[int, DriverDTO] = {}
        # student_id -> user_id родителя
        self.students: dict[int, int | None] = {}

    # --- наполнение ---

    def add_trip(
        self,
        trip_id: int,
        driver_user_id: int,
        status: TripStatus = TripStatus.SCHEDULED,
        passengers: Iterable[tuple[int, int | None]] = (),
        trip_date: datetime | None = None,
    ) -> None:
        """passengers: пары (student_id, user_id родителя)."""
        passengers = tuple(passengers)
        driver_id = self.driver_ids.setdefault(driver_user_id, 100 + driver_user_id)
        self.drivers.setdefault(
            driver_id, DriverDTO(id=driver_id, user_id=driver_user_id, first_name="Driver", last_name=str(driver_user_id))
        )
        for student_id, parent_user_id in passengers:
            self.students.setdefault(student_id, parent_user_id)
            if parent_user_id is not None:
                self.parent_ids.setdefault(parent_user_id, 200 + parent_user_id)
        self.trips[trip_id] = {
            "id": trip_id,
            "trip_label": f"TRIP-{trip_id}",
            "trip_name": f"Trip {trip_id}",
            "trip_date": trip_date or datetime.now(timezone.utc),
            "status": status,
            "bus_id": 1,
            "route_id": 1,
            "driver_id": self.driver_ids[driver_user_id],
            "driver_user_id": driver_user_id,
            "started_at": None,
            "stopped_at": None,
            "passengers": tuple(passengers),
        }

    def _dto(self, trip: dict[str, Any]) -> TripDTO:
        return TripDTO(**{k: v for k, v in trip.items() if k not in ("driver_user_id", "passengers")})

    def _passenger(self, student_id: int, parent_user_id: int | None) -> PassengerDTO:
        return PassengerDTO(
            student_id=student_id,
            first_name=f"Student{student_id}",
            last_name="Test",
            admission=1000 + student_id,
            parent_id=self.parent_ids.get(parent_user_id) if parent_user_id is not None else None,
        )

    # --- чтение ---

    async def find_trip_access(self, trip_id: int) -> TripAccess | None:
        trip = self.trips.get(trip_id)
        if trip is None:
            return None
        return TripAccess(
            trip_id=trip_id,
            status=trip["status"],
            driver_user_id=trip["driver_user_id"],
            trip_date=trip["trip_date"],
            passengers=tuple(PassengerLink(sid, puid) for sid, puid in trip["passengers"]),
        )

    async def find_trip_by_id(self, trip_id: int) -> TripDetailDTO | None:
        trip = self.trips.get(trip_id)
        if trip is None:
            return None
        detail = TripDetailDTO(**self._dto(trip).model_dump())
        detail.passengers = [self._passenger(sid, puid) for sid, puid in trip["passengers"]]
        detail.attendance = [a for (tid, _), a in self.attendance.items() if tid == trip_id]
        return detail

    async def list_trips_for_user(self, scope: TripScope, trip_date: date | None = None) -> list[TripDTO]:
        result = []
        for trip in self.trips.values():
            if scope.kind == ScopeKind.NONE:
                continue
            if scope.kind == ScopeKind.DRIVER and trip["driver_user_id"] != scope.user_id:
                continue
            if scope.kind == ScopeKind.PARENT and scope.user_id not in {p for _, p in trip["passengers"]}:
                continue
            if trip_date is not None and trip["trip_date"].date() != trip_date:
                continue
            result.append(self._dto(trip))
        return sorted(result, key=lambda t: t.trip_date, reverse=True)

    async def list_passengers(self, trip_ids: Iterable[int]) -> dict[int, list[PassengerDTO]]:
        return {
            trip_id: [self._passenger(sid, puid) for sid, puid in self.trips[trip_id]["passengers"]]
            for trip_id in trip_ids
        }

    async def find_parent_id(self, user_id: int) -> int | None:
        return self.parent_ids.get(user_id)

    async def find_bus(self, bus_id: int) -> BusDTO | None:
        return self.buses.get(bus_id)

    async def find_route(self, route_id: int) -> RouteDTO | None:
        return self.routes.get(route_id)

    async def find_driver(self, driver_id: int) -> DriverDTO | None:
        return self.drivers.get(driver_id)

    async def find_missing_students(self, student_ids: Iterable[int]) -> list[int]:
        return [s for s in dict.fromkeys(student_ids) if s not in self.students]

    async def get_location_stats(self, trip_id: int) -> LocationStats:
        captured = [s.captured_at for s in self.locations if s.trip_id == trip_id]
        if not captured:
            return LocationStats()
        return LocationStats(
            sample_count=len(captured),
            first_captured_at=min(captured),
            last_captured_at=max(captured),
        )

    # --- запись ---

    async def create_trip(
        self,
        trip_label: str,
        trip_name: str,
        trip_date: datetime,
        bus_id: int,
        route_id: int,
        driver_id: int,
        student_ids: Iterable[int],
    ) -> TripDTO:
        trip_id = max(self.trips, default=0) + 1
        driver = self.drivers[driver_id]
        self.add_trip(
            trip_id,
            driver_user_id=driver.user_id,
            passengers=[(s, self.students.get(s)) for s in dict.fromkeys(student_ids)],
            trip_date=trip_date,
        )
        self.trips[trip_id].update(trip_label=trip_label, trip_name=trip_name, bus_id=bus_id, route_id=route_id)
        return self._dto(self.trips[trip_id])

    async def update_trip_status(
        self,
        trip_id: int,
        status: TripStatus,
        timestamp_field: str,
        expected_status: TripStatus,
    ) -> TripDTO | None:
        await asyncio.sleep(0)
        trip = self.trips.get(trip_id)
        if trip is None or trip["status"] != expected_status:
            return None
        trip["status"] = status
        trip[timestamp_field] = datetime.now(timezone.utc)
        return self._dto(trip)

    async def upsert_attendance(self, trip_id: int, student_id: int, status: str, marked_by: int) -> AttendanceDTO:
        previous = self.attendance.get((trip_id, student_id))
        record = AttendanceDTO(
            id=previous.id if previous else len(self.attendance) + 1,
            trip_id=trip_id,
            student_id=student_id,
            status=status,
            timestamp=datetime.now(timezone.utc),
            marked_by=marked_by,
        )
        self.attendance[(trip_id, student_id)] = record
        return record

    async def feedback_exists(self, trip_id: int, parent_id: int, student_id: int | None) -> bool:
        return any(
            f.trip_id == trip_id and f.parent_id == parent_id and f.student_id == student_id
            for f in self.feedback
        )

    async def insert_feedback(
        self,
        trip_id: int,
        parent_id: int,
        student_id: int | None,
        rating: int,
        comment: str | None,
    ) -> FeedbackDTO | None:
        if await self.feedback_exists(trip_id, parent_id, student_id):
            return None
        record = FeedbackDTO(
            id=len(self.feedback) + 1,
            trip_id=trip_id,
            parent_id=parent_id,
            student_id=student_id,
            rating=rating,
            comment=comment,
            created_at=datetime.now(timezone.utc),
        )
        self.feedback.append(record)
        return record

    async def list_feedback(self, trip_id: int, parent_id: int | None = None) -> list[FeedbackDTO]:
        return [
            f for f in self.feedback
            if f.trip_id == trip_id and (parent_id is None or f.parent_id == parent_id)
        ]

    # --- точки маршрута ---

    async def append_location_sample(
        self,
        trip_id: int,
        driver_user_id: int,
        latitude: float,
        longitude: float,
        speed: float | None = None,
        heading: float | None = None,
    ) -> LocationSampleDTO | None:
        await asyncio.sleep(0)
        trip = self.trips.get(trip_id)
        if trip is None or trip["driver_user_id"] != driver_user_id or trip["status"] != TripStatus.IN_PROGRESS:
            return None

        captured_at = datetime.now(timezone.utc)
        previous = [s.captured_at for s in self.locations if s.trip_id == trip_id]
        if previous and captured_at <= max(previous):
            captured_at = max(previous) + timedelta(microseconds=1)

        sample = LocationSampleDTO(
            id=len(self.locations) + 1,
            trip_id=trip_id,
            driver_id=trip["driver_id"],
            latitude=latitude,
            longitude=longitude,
            speed=speed,
            heading=heading,
            captured_at=captured_at,
        )
        self.locations.append(sample)
        return sample

    async def list_recent_locations(self, trip_id: int, limit: int = 100) -> list[LocationSampleDTO]:
        samples = [s for s in self.locations if s.trip_id == trip_id]
        return sorted(samples, key=lambda s: s.captured_at, reverse=True)[:limit]

    async def latest_location(self, trip_id: int) -> LocationSampleDTO | None:
        recent = await self.list_recent_locations(trip_id, limit=1)
        return recent[0] if recent else None


class RecordingBroadcaster:
    """Рассыльщик, запоминающий события вместо доставки."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, Any]] = []

    async def emit(self, room: str, event: str, data: Any) -> None:
        self.events.append((room, str(event), data))

    def of(self, event: str) -> list[tuple[str, Any]]:
        return [(room, data) for room, name, data in self.events if name == event]


class FakeWebSocket:
    """Двойник WebSocket: копит отправленные кадры."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if name is None or frame["event"] == name]


@pytest.fixture
def trip_store() -> FakeTripStore:
    return FakeTripStore()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def fake_websocket_factory():
    return FakeWebSocket


@pytest.fixture
def scenario_store(trip_store: FakeTripStore, driver: AuthUser, parent: AuthUser) -> FakeTripStore:
    """
    Рейс 1: SCHEDULED, водитель driver, ребёнок 5 родителя parent.
    Рейс 2: IN_PROGRESS, другой водитель (id 11), ребёнок 6 родителя 21.
    """
    trip_store.add_trip(1, driver_user_id=driver.id, passengers=[(5, parent.id)])
    trip_store.add_trip(2, driver_user_id=11, status=TripStatus.IN_PROGRESS, passengers=[(6, 21)])
    return trip_store
