# src/services/location_service/service.py
"""
Бизнес-логика приёма геолокации рейса.

Порядок проверок при приёме точки (первая неудача выигрывает):
1. роль DRIVER, иначе Forbidden;
2. рейс существует, назначен этому водителю и IN_PROGRESS, иначе Forbidden;
3. координаты присутствуют и числовые, иначе InvalidArgument.

Точка сначала сохраняется, затем рассылается в комнату рейса (включая
отправителя). Запись и рассылка одного рейса выполняются под общей
блокировкой, поэтому порядок рассылки совпадает с порядком записи.
"""

from __future__ import annotations

import asyncio
import math
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from src.common.constants import ServerEvent
from src.common.logger import log_debug, log_error
from src.core.access import can_view_trip
from src.infra.redis_client import RedisClient
from src.services.location_service.repository import LocationRepository
from src.services.realtime_ws.broadcaster import RoomBroadcaster
from src.services.realtime_ws.connection_manager import trip_room
from src.services.trip_service.repository import TripRepository
from src.shared.errors import Forbidden, InvalidArgument, NotFound
from src.shared.models.enums import TripStatus, UserRole
from src.shared.models.location_dto import LocationBroadcast, LocationSampleDTO
from src.shared.models.user_dto import AuthUser

ONLY_DRIVERS = "Forbidden: Only drivers can update location"
NOT_ASSIGNED = "Forbidden: You are not assigned to this trip or trip is not in progress"
NO_TRIP_ACCESS = "Forbidden: You do not have access to this trip"
INVALID_LOCATION = "Invalid location data"
NO_LOCATION_DATA = "No location data found for this trip"


class TripLocks:
    """
    Блокировки asyncio по trip_id.
    Запись удаляется, когда её больше никто не ждёт.
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        self._waiters: dict[int, int] = {}

    @asynccontextmanager
    async def hold(self, trip_id: int) -> AsyncIterator[None]:
        lock = self._locks.setdefault(trip_id, asyncio.Lock())
        self._waiters[trip_id] = self._waiters.get(trip_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[trip_id] -= 1
            if self._waiters[trip_id] == 0:
                del self._waiters[trip_id]
                del self._locks[trip_id]

    def __len__(self) -> int:
        return len(self._locks)


# Один экземпляр на процесс: сервис создаётся на каждый запрос
trip_locks = TripLocks()


def _to_number(value: Any, *, required: bool) -> float | None:
    """Число или числовая строка; bool и нечисловые значения отвергаются."""
    if value is None or value == "":
        if required:
            raise InvalidArgument(INVALID_LOCATION)
        return None
    if isinstance(value, bool):
        raise InvalidArgument(INVALID_LOCATION)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument(INVALID_LOCATION)
    if not math.isfinite(number):
        raise InvalidArgument(INVALID_LOCATION)
    return number


def parse_coordinates(
    latitude: Any,
    longitude: Any,
    speed: Any = None,
    heading: Any = None,
) -> tuple[float, float, float | None, float | None]:
    """Проверяет и приводит координаты к float."""
    lat = _to_number(latitude, required=True)
    lng = _to_number(longitude, required=True)
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise InvalidArgument(INVALID_LOCATION)
    return lat, lng, _to_number(speed, required=False), _to_number(heading, required=False)


class LocationService:
    """
    Сервис приёма и выдачи геолокации рейсов.

    Ответственности:
    - проверка прав и приём точки от водителя
    - сохранение в trip_locations
    - рассылка location-broadcast в комнату рейса
    - кэш последней точки в Redis
    """

    LATEST_KEY = "trip:{trip_id}:latest_location"

    def __init__(
        self,
        repository: LocationRepository,
        trips: TripRepository,
        broadcaster: RoomBroadcaster,
        redis: RedisClient | None = None,
        history_limit: int = 100,
        latest_ttl: int = 300,
        locks: TripLocks | None = None,
    ) -> None:
        self.repository = repository
        self.trips = trips
        self.broadcaster = broadcaster
        self.redis = redis
        self.history_limit = history_limit
        self.latest_ttl = latest_ttl
        self.locks = locks if locks is not None else trip_locks

    async def submit_location(
        self,
        user: AuthUser,
        trip_id: int,
        latitude: Any,
        longitude: Any,
        speed: Any = None,
        heading: Any = None,
    ) -> LocationSampleDTO:
        """
        Принять точку водителя.

        Raises:
            Forbidden: не водитель, чужой или неактивный рейс
            InvalidArgument: координаты отсутствуют или некорректны
        """
        if user.role != UserRole.DRIVER:
            raise Forbidden(ONLY_DRIVERS)

        trip = await self.trips.find_trip_access(trip_id)
        if trip is None or trip.driver_user_id != user.id or trip.status != TripStatus.IN_PROGRESS:
            raise Forbidden(NOT_ASSIGNED)

        lat, lng, speed_value, heading_value = parse_coordinates(latitude, longitude, speed, heading)

        async with self.locks.hold(trip_id):
            sample = await self.repository.append_location_sample(
                trip_id, user.id, lat, lng, speed_value, heading_value
            )
            if sample is None:
                # Рейс завершили между проверкой и записью
                raise Forbidden(NOT_ASSIGNED)

            payload = LocationBroadcast(
                trip_id=sample.trip_id,
                latitude=sample.latitude,
                longitude=sample.longitude,
                speed=sample.speed,
                heading=sample.heading,
                timestamp=sample.captured_at,
            )
            await self.broadcaster.emit(trip_room(trip_id), ServerEvent.LOCATION_BROADCAST, payload.to_payload())
            await self._cache_latest(sample)

        await log_debug(f"Рейс {trip_id}: точка {sample.id} ({lat}, {lng})")
        return sample

    async def list_history(self, user: AuthUser, trip_id: int) -> list[LocationSampleDTO]:
        """История точек рейса, новые первыми (не более history_limit)."""
        await self._check_view(user, trip_id)
        return await self.repository.list_recent_locations(trip_id, self.history_limit)

    async def get_latest(self, user: AuthUser, trip_id: int) -> LocationSampleDTO:
        await self._check_view(user, trip_id)

        cached = await self._read_cached(trip_id)
        if cached is not None:
            return cached

        # Под блокировкой рейса, иначе запись устаревшей точки затрёт свежую
        async with self.locks.hold(trip_id):
            sample = await self.repository.latest_location(trip_id)
            if sample is None:
                raise NotFound(NO_LOCATION_DATA)
            await self._cache_latest(sample)
        return sample

    async def _check_view(self, user: AuthUser, trip_id: int) -> None:
        trip = await self.trips.find_trip_access(trip_id)
        if trip is None or not can_view_trip(user, trip):
            raise Forbidden(NO_TRIP_ACCESS)

    # =========================================================================
    # КЭШ ПОСЛЕДНЕЙ ТОЧКИ
    # =========================================================================

    async def _cache_latest(self, sample: LocationSampleDTO) -> None:
        if self.redis is None or not self.redis.is_connected:
            return
        try:
            await self.redis.set_model(
                self.LATEST_KEY.format(trip_id=sample.trip_id), sample, ttl=self.latest_ttl
            )
        except Exception as e:
            # Кэш не влияет на результат: точка уже сохранена в БД
            await log_error(f"Не удалось обновить кэш локации рейса {sample.trip_id}: {e}")

    async def _read_cached(self, trip_id: int) -> LocationSampleDTO | None:
        if self.redis is None or not self.redis.is_connected:
            return None
        try:
            return await self.redis.get_model(self.LATEST_KEY.format(trip_id=trip_id), LocationSampleDTO)
        except Exception as e:
            await log_error(f"Ошибка чтения кэша локации рейса {trip_id}: {e}")
            return None
