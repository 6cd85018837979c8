# src/services/realtime_ws/redis_subscriber.py
"""
Подписчик Redis Pub/Sub для межпроцессного бэкплейна комнат.

Слушает каналы <namespace>:<prefix>* и передаёт каждое событие
обработчику (room, event, data), который раздаёт его локальным соединениям.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Coroutine

from src.common.logger import log_error, log_info
from src.common.constants import TypeMsg
from src.infra.redis_client import RedisClient

RoomEventHandler = Callable[[str, str, Any], Coroutine[Any, Any, Any]]


class RedisSubscriber:
    """
    Фоновая задача, читающая pub/sub и вызывающая обработчик.
    Ошибки обработки одного сообщения не останавливают цикл.
    """

    def __init__(
        self,
        redis: RedisClient,
        handler: RoomEventHandler,
        channel_prefix: str = "rooms:",
    ) -> None:
        self._redis = redis
        self._handler = handler
        self._channel_prefix = channel_prefix
        self._pubsub = None
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def pattern(self) -> str:
        return self._redis.make_key(f"{self._channel_prefix}*")

    async def start(self) -> None:
        if self._running:
            return

        self._pubsub = self._redis.pubsub()
        await self._pubsub.psubscribe(self.pattern)
        self._running = True
        self._task = asyncio.create_task(self._listen())
        await log_info(f"Redis-бэкплейн комнат запущен: {self.pattern}", type_msg=TypeMsg.INFO)

    async def stop(self) -> None:
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._pubsub:
            await self._pubsub.punsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None

    async def _listen(self) -> None:
        while self._running:
            try:
                message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                await self.process_message(message)
            except asyncio.CancelledError:
                break
            except Exception as e:
                await log_error(f"Ошибка Redis-подписчика: {e}", exc_info=True)
                await asyncio.sleep(1)

    async def process_message(self, message: dict[str, Any]) -> bool:
        """
        Разбирает сообщение pub/sub и вызывает обработчик.

        Returns:
            True, если сообщение было событием комнаты и передано обработчику
        """
        if message.get("type") not in ("message", "pmessage"):
            return False

        channel = message.get("channel") or ""
        if isinstance(channel, bytes):
            channel = channel.decode("utf-8")
        channel = self._redis.strip_namespace(channel)
        if not channel.startswith(self._channel_prefix):
            return False
        room = channel[len(self._channel_prefix):]

        raw = message.get("data") or ""
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")

        try:
            envelope = json.loads(raw)
        except json.JSONDecodeError:
            await log_error(f"Некорректное сообщение в канале {channel}")
            return False

        if not isinstance(envelope, dict) or "event" not in envelope:
            return False

        await self._handler(room, envelope["event"], envelope.get("data"))
        return True
