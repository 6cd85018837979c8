# src/services/realtime_ws/gateway.py
"""
Обработчик событий realtime-соединения.

Соединение проходит Connecting -> Authenticated -> (RoomMember)* -> Disconnected.
Токен проверяется до accept(); после регистрации соединение уже состоит
в своей inbox-комнате user-<id>. Ошибки домена возвращаются событием
error({message}), соединение остаётся открытым.
"""

from __future__ import annotations

import json
from typing import Any

from src.common.constants import ClientEvent, ServerEvent
from src.common.logger import log_debug, log_error
from src.core.access import can_join_trip_room
from src.services.location_service.service import LocationService
from src.services.realtime_ws.connection_manager import ConnectionInfo, ConnectionManager, trip_room
from src.services.trip_service.repository import TripRepository
from src.shared.errors import Forbidden, InvalidArgument, SchoolBusError

INVALID_TRIP_ID = "Invalid trip id"
NO_ROOM_ACCESS = "Forbidden: You do not have access to this trip"
INVALID_MESSAGE = "Invalid message format"
INVALID_LOCATION_PAYLOAD = "tripId, latitude, and longitude are required"
INTERNAL_ERROR = "Internal server error"


def parse_trip_id(value: Any) -> int:
    """tripId может прийти числом, строкой или объектом {"tripId": ...}."""
    if isinstance(value, dict):
        value = value.get("tripId")
    if isinstance(value, bool):
        raise InvalidArgument(INVALID_TRIP_ID)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise InvalidArgument(INVALID_TRIP_ID)


def parse_envelope(raw: str) -> tuple[str, Any]:
    """Кадр клиента: {"event": <имя>, "data": <полезная нагрузка>}."""
    try:
        envelope = json.loads(raw)
    except json.JSONDecodeError:
        raise InvalidArgument(INVALID_MESSAGE)
    if not isinstance(envelope, dict) or not isinstance(envelope.get("event"), str):
        raise InvalidArgument(INVALID_MESSAGE)
    return envelope["event"], envelope.get("data")


class RealtimeGateway:
    """Диспетчер клиентских событий для одного процесса."""

    def __init__(
        self,
        manager: ConnectionManager,
        trips: TripRepository,
        locations: LocationService,
    ) -> None:
        self.manager = manager
        self.trips = trips
        self.locations = locations

    async def handle_raw(self, conn: ConnectionInfo, raw: str) -> None:
        """Разбирает кадр и обрабатывает событие; ошибки уходят клиенту событием error."""
        try:
            event, data = parse_envelope(raw)
            await self.dispatch(conn, event, data)
        except SchoolBusError as e:
            await self.send_error(conn, e.message)
        except Exception as e:
            await log_error(f"Ошибка обработки события от {conn.connection_id}: {e}", exc_info=True)
            await self.send_error(conn, INTERNAL_ERROR)

    async def dispatch(self, conn: ConnectionInfo, event: str, data: Any) -> None:
        if event == ClientEvent.JOIN_TRIP:
            await self.join_trip(conn, data)
        elif event == ClientEvent.LEAVE_TRIP:
            await self.leave_trip(conn, data)
        elif event == ClientEvent.LOCATION_UPDATE:
            await self.location_update(conn, data)
        elif event == ClientEvent.PING:
            await self.manager.send(conn.connection_id, ServerEvent.PONG, data)
        else:
            raise InvalidArgument(f"Unknown event: {event}")

    async def join_trip(self, conn: ConnectionInfo, data: Any) -> None:
        """
        Вход в комнату рейса. Повторный вход не ошибка: подтверждение
        отправляется снова, членство не дублируется.
        """
        trip_id = parse_trip_id(data)
        trip = await self.trips.find_trip_access(trip_id)
        if trip is None or not can_join_trip_room(conn.user, trip):
            raise Forbidden(NO_ROOM_ACCESS)

        room = trip_room(trip_id)
        if self.manager.join(conn.connection_id, room):
            await log_debug(f"Соединение {conn.connection_id} (user {conn.user.id}) вошло в {room}")

        await self.manager.send(
            conn.connection_id,
            ServerEvent.JOINED_TRIP,
            {"tripId": trip_id, "message": f"Joined trip {trip_id}"},
        )

    async def leave_trip(self, conn: ConnectionInfo, data: Any) -> None:
        trip_id = parse_trip_id(data)
        self.manager.leave(conn.connection_id, trip_room(trip_id))
        await self.manager.send(conn.connection_id, ServerEvent.LEFT_TRIP, {"tripId": trip_id})

    async def location_update(self, conn: ConnectionInfo, data: Any) -> None:
        """Проверка формы кадра, затем общий путь приёма точки (рассылку делает сервис)."""
        if not isinstance(data, dict) or "latitude" not in data or "longitude" not in data:
            raise InvalidArgument(INVALID_LOCATION_PAYLOAD)
        trip_id = parse_trip_id(data.get("tripId"))

        await self.locations.submit_location(
            conn.user,
            trip_id,
            data.get("latitude"),
            data.get("longitude"),
            data.get("speed"),
            data.get("heading"),
        )

    async def send_error(self, conn: ConnectionInfo, message: str) -> None:
        await self.manager.send(conn.connection_id, ServerEvent.ERROR, {"message": message})
