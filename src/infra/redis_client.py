# src/infra/redis_client.py
"""
Клиент Redis.
Кэш последней локации рейса (типизированные операции с Pydantic моделями)
и pub/sub-каналы для межпроцессной рассылки событий комнат.
"""

from __future__ import annotations

import json
from typing import Any, Type, TypeVar

import redis.asyncio as redis
from redis.asyncio.client import PubSub
from pydantic import BaseModel

from src.common.logger import log_error, log_info
from src.common.constants import TypeMsg

T = TypeVar("T", bound=BaseModel)


class RedisClient:
    """
    Асинхронный клиент Redis (Singleton).
    Все ключи и каналы получают префикс namespace.
    """

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = "school_bus"

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def make_key(self, key: str) -> str:
        """Добавляет namespace к ключу или имени канала."""
        return f"{self._namespace}:{key}"

    def strip_namespace(self, key: str) -> str:
        prefix = f"{self._namespace}:"
        return key[len(prefix):] if key.startswith(prefix) else key

    async def connect(self, url: str, max_connections: int = 50, namespace: str | None = None) -> None:
        """
        Подключается к Redis и проверяет соединение PING'ом.

        Args:
            url: URL Redis
            max_connections: Максимальное количество соединений
            namespace: Префикс ключей
        """
        if self._client is not None:
            return

        if namespace:
            self._namespace = namespace

        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )
        await self._client.ping()

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # БАЗОВЫЕ ОПЕРАЦИИ
    # =========================================================================

    async def get(self, key: str) -> str | None:
        return await self.client.get(self.make_key(key))

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        return await self.client.set(self.make_key(key), value, ex=ttl)

    async def delete(self, key: str) -> int:
        return await self.client.delete(self.make_key(key))

    # =========================================================================
    # ТИПИЗИРОВАННЫЕ ОПЕРАЦИИ (PYDANTIC)
    # =========================================================================

    async def get_model(self, key: str, model_class: Type[T]) -> T | None:
        """
        Получает и десериализует Pydantic модель.
        Повреждённое значение считается промахом кэша.
        """
        data = await self.get(key)
        if data is None:
            return None

        try:
            return model_class.model_validate_json(data)
        except ValueError as e:
            await log_error(f"Ошибка десериализации модели {model_class.__name__}: {e}")
            return None

    async def set_model(self, key: str, model: BaseModel, ttl: int | None = None) -> bool:
        """Сериализует и сохраняет Pydantic модель."""
        return await self.set(key, model.model_dump_json(), ttl=ttl)

    # =========================================================================
    # PUB/SUB
    # =========================================================================

    async def publish(self, channel: str, payload: dict[str, Any]) -> int:
        """
        Публикует JSON-сообщение в канал.

        Returns:
            Количество подписчиков, получивших сообщение
        """
        message = json.dumps(payload, ensure_ascii=False, default=str)
        return await self.client.publish(self.make_key(channel), message)

    def pubsub(self) -> PubSub:
        """Новый объект PubSub на общем пуле соединений."""
        return self.client.pubsub()

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    async def health_check(self) -> bool:
        """True, если Redis отвечает на PING."""
        try:
            return await self.client.ping()
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


def get_redis() -> RedisClient:
    """Возвращает глобальный экземпляр RedisClient."""
    return RedisClient()


async def init_redis() -> None:
    """Подключается к Redis по настройкам."""
    from src.config import settings

    await log_info("Подключение к Redis...", type_msg=TypeMsg.INFO)
    await get_redis().connect(
        url=settings.redis.url,
        max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
        namespace=settings.redis.REDIS_NAMESPACE,
    )
    await log_info(
        f"Redis подключён: {settings.redis.REDIS_HOST}:{settings.redis.REDIS_PORT}/{settings.redis.REDIS_DB}",
        type_msg=TypeMsg.INFO,
    )


async def close_redis() -> None:
    """Закрывает подключение к Redis."""
    await get_redis().disconnect()
    await log_info("Redis отключён", type_msg=TypeMsg.INFO)
