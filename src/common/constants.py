# src/common/constants.py
"""
Общие константы: типы сообщений лога и имена realtime-событий.
"""

from enum import Enum


LOGGER_NAME = "school_bus"


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ClientEvent(str, Enum):
    """События, которые клиент отправляет в realtime-шлюз."""
    JOIN_TRIP = "join-trip"
    LEAVE_TRIP = "leave-trip"
    LOCATION_UPDATE = "location-update"
    PING = "ping"

    def __str__(self) -> str:
        return self.value


class ServerEvent(str, Enum):
    """События, которые сервер рассылает подключениям."""
    CONNECTED = "connected"
    JOINED_TRIP = "joined-trip"
    LEFT_TRIP = "left-trip"
    ERROR = "error"
    LOCATION_BROADCAST = "location-broadcast"
    MESSAGE_BROADCAST = "message-broadcast"
    TRIP_STARTED = "trip-started"
    TRIP_ENDED = "trip-ended"
    TRIP_CANCELLED = "trip-cancelled"
    ATTENDANCE_UPDATED = "attendance-updated"
    PONG = "pong"

    def __str__(self) -> str:
        return self.value
