# src/services/realtime_ws/connection_manager.py
"""
Реестр realtime-сессий.

Явное состояние вместо неявных "комнат" фреймворка:
- connection_id -> ConnectionInfo (сокет, пользователь, множество комнат)
- room -> множество connection_id

Вход и выход из комнат — синхронные переходы состояния без ввода-вывода;
рассылка по комнате — единственная асинхронная операция.
Членство в комнатах живёт ровно столько, сколько соединение.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import uuid4

from src.shared.models.user_dto import AuthUser


def trip_room(trip_id: int) -> str:
    """Комната рейса."""
    return f"trip-{trip_id}"


def user_room(user_id: int) -> str:
    """Личная inbox-комната пользователя."""
    return f"user-{user_id}"


class EventSink(Protocol):
    """То, во что можно отправить JSON (WebSocket Starlette или тестовый двойник)."""

    async def send_json(self, data: Any) -> None: ...


@dataclass
class ConnectionInfo:
    """Информация о соединении."""
    connection_id: str
    websocket: EventSink
    user: AuthUser
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    rooms: set[str] = field(default_factory=set)


class ConnectionManager:
    """
    Менеджер realtime-соединений.

    У одного пользователя может быть несколько соединений (телефон и браузер);
    каждое получает собственный connection_id.
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnectionInfo] = {}
        self._rooms: dict[str, set[str]] = {}

        self._total_connections: int = 0
        self._total_messages_sent: int = 0

    @property
    def active_connections(self) -> int:
        return len(self._connections)

    # =========================================================================
    # ЖИЗНЕННЫЙ ЦИКЛ СОЕДИНЕНИЯ
    # =========================================================================

    def register(self, websocket: EventSink, user: AuthUser) -> ConnectionInfo:
        """
        Регистрирует уже аутентифицированное соединение и сразу
        добавляет его в inbox-комнату пользователя.
        """
        conn = ConnectionInfo(connection_id=uuid4().hex, websocket=websocket, user=user)
        self._connections[conn.connection_id] = conn
        self._total_connections += 1
        self.join(conn.connection_id, user_room(user.id))
        return conn

    def unregister(self, connection_id: str) -> set[str]:
        """
        Удаляет соединение и его членство во всех комнатах.

        Returns:
            Комнаты, в которых состояло соединение
        """
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return set()

        for room in conn.rooms:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self._rooms[room]
        return set(conn.rooms)

    def get(self, connection_id: str) -> ConnectionInfo | None:
        return self._connections.get(connection_id)

    # =========================================================================
    # КОМНАТЫ
    # =========================================================================

    def join(self, connection_id: str, room: str) -> bool:
        """
        Добавляет соединение в комнату.

        Returns:
            True — соединение добавлено; False — уже было в комнате
            или соединение неизвестно (повторный join не ошибка)
        """
        conn = self._connections.get(connection_id)
        if conn is None or room in conn.rooms:
            return False

        conn.rooms.add(room)
        self._rooms.setdefault(room, set()).add(connection_id)
        return True

    def leave(self, connection_id: str, room: str) -> bool:
        conn = self._connections.get(connection_id)
        if conn is None or room not in conn.rooms:
            return False

        conn.rooms.discard(room)
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._rooms[room]
        return True

    def rooms_of(self, connection_id: str) -> set[str]:
        conn = self._connections.get(connection_id)
        return set(conn.rooms) if conn else set()

    def members_of(self, room: str) -> set[str]:
        return set(self._rooms.get(room, set()))

    # =========================================================================
    # ОТПРАВКА
    # =========================================================================

    async def send(self, connection_id: str, event: str, data: Any) -> bool:
        """
        Отправить событие одному соединению.

        Returns:
            False, если соединения нет или отправка не удалась
        """
        conn = self._connections.get(connection_id)
        if conn is None:
            return False

        try:
            await conn.websocket.send_json({"event": str(event), "data": data})
        except Exception:
            # Сокет уже закрыт: очищаем реестр, соединение переподключится само
            self.unregister(connection_id)
            return False

        self._total_messages_sent += 1
        return True

    async def emit_to_room(self, room: str, event: str, data: Any) -> int:
        """
        Разослать событие всем соединениям комнаты (включая отправителя).

        Returns:
            Количество успешно доставленных сообщений
        """
        sent_count = 0
        for connection_id in sorted(self.members_of(room)):
            if await self.send(connection_id, event, data):
                sent_count += 1
        return sent_count

    def get_stats(self) -> dict[str, Any]:
        """Статистика для /health."""
        by_role: dict[str, int] = {}
        for conn in self._connections.values():
            by_role[str(conn.user.role)] = by_role.get(str(conn.user.role), 0) + 1

        return {
            "active_connections": len(self._connections),
            "total_rooms": len(self._rooms),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_messages_sent,
            "connections_by_role": by_role,
        }


# Глобальный экземпляр (один на процесс)
manager = ConnectionManager()
