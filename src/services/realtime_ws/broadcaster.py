# src/services/realtime_ws/broadcaster.py
"""
Рассылка событий по комнатам.

LocalBroadcaster доставляет события соединениям текущего процесса.
RedisBroadcaster публикует событие в канал Redis; каждый процесс слушает
каналы через RedisSubscriber и раздаёт событие своим локальным соединениям,
поэтому при нескольких инстансах событие доходит до всех участников комнаты.
"""

from __future__ import annotations

from typing import Any, Protocol

from src.common.logger import log_error
from src.infra.redis_client import RedisClient
from src.services.realtime_ws.connection_manager import ConnectionManager


class RoomBroadcaster(Protocol):
    async def emit(self, room: str, event: str, data: Any) -> None: ...


class LocalBroadcaster:
    """Доставка в пределах одного процесса."""

    def __init__(self, manager: ConnectionManager) -> None:
        self._manager = manager

    async def emit(self, room: str, event: str, data: Any) -> None:
        await self._manager.emit_to_room(room, str(event), data)


class RedisBroadcaster:
    """Доставка через Redis pub/sub; порядок событий одного издателя сохраняется."""

    def __init__(self, redis: RedisClient, channel_prefix: str = "rooms:") -> None:
        self._redis = redis
        self._prefix = channel_prefix

    def channel_for(self, room: str) -> str:
        return f"{self._prefix}{room}"

    async def emit(self, room: str, event: str, data: Any) -> None:
        try:
            await self._redis.publish(self.channel_for(room), {"event": str(event), "data": data})
        except Exception as e:
            # Живая лента best-effort: долговременные данные уже записаны
            await log_error(f"Не удалось опубликовать {event} в {room}: {e}")
