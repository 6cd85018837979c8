# src/services/realtime_ws/dependencies.py
"""
Фабрики realtime-компонентов: реестр сессий и рассыльщик событий комнат.
"""

from __future__ import annotations

from src.common.logger import log_info
from src.common.constants import TypeMsg
from src.infra.redis_client import get_redis
from src.services.realtime_ws.broadcaster import LocalBroadcaster, RedisBroadcaster, RoomBroadcaster
from src.services.realtime_ws.connection_manager import ConnectionManager, manager
from src.services.realtime_ws.redis_subscriber import RedisSubscriber

_broadcaster: RoomBroadcaster | None = None
_subscriber: RedisSubscriber | None = None


def get_connection_manager() -> ConnectionManager:
    return manager


def get_broadcaster() -> RoomBroadcaster:
    """Рассыльщик, выбранный при старте; до старта — локальный."""
    global _broadcaster
    if _broadcaster is None:
        _broadcaster = LocalBroadcaster(manager)
    return _broadcaster


async def init_realtime() -> None:
    """
    Настраивает бэкплейн по REALTIME_BACKPLANE.
    Для redis Redis-клиент должен быть уже подключён.
    """
    global _broadcaster, _subscriber
    from src.config import settings

    if settings.realtime.REALTIME_BACKPLANE == "redis":
        prefix = settings.realtime.REALTIME_CHANNEL_PREFIX
        _broadcaster = RedisBroadcaster(get_redis(), channel_prefix=prefix)
        _subscriber = RedisSubscriber(get_redis(), manager.emit_to_room, channel_prefix=prefix)
        await _subscriber.start()
    else:
        _broadcaster = LocalBroadcaster(manager)

    await log_info(
        f"Realtime-бэкплейн: {settings.realtime.REALTIME_BACKPLANE}", type_msg=TypeMsg.INFO
    )


async def close_realtime() -> None:
    global _broadcaster, _subscriber
    if _subscriber is not None:
        await _subscriber.stop()
        _subscriber = None
    _broadcaster = None
