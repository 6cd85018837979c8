# tests/realtime/test_redis_subscriber.py
"""
Тесты подписчика Redis-бэкплейна комнат.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.services.realtime_ws.redis_subscriber import RedisSubscriber


@pytest.fixture
def redis() -> MagicMock:
    client = MagicMock()
    client.make_key.side_effect = lambda key: f"school_bus:{key}"
    client.strip_namespace.side_effect = lambda key: key.removeprefix("school_bus:")
    return client


@pytest.fixture
def handler() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def subscriber(redis, handler) -> RedisSubscriber:
    return RedisSubscriber(redis, handler)


def envelope(event: str, data) -> str:
    return json.dumps({"event": event, "data": data})


class TestProcessMessage:
    """Тесты разбора сообщений pub/sub."""

    def test_pattern(self, subscriber) -> None:
        assert subscriber.pattern == "school_bus:rooms:*"

    @pytest.mark.asyncio
    async def test_pmessage_dispatched(self, subscriber, handler) -> None:
        message = {
            "type": "pmessage",
            "pattern": "school_bus:rooms:*",
            "channel": "school_bus:rooms:trip-1",
            "data": envelope("location-broadcast", {"tripId": 1}),
        }

        assert await subscriber.process_message(message) is True
        handler.assert_called_once_with("trip-1", "location-broadcast", {"tripId": 1})

    @pytest.mark.asyncio
    async def test_bytes_channel_and_data(self, subscriber, handler) -> None:
        message = {
            "type": "message",
            "channel": b"school_bus:rooms:user-20",
            "data": envelope("message-broadcast", {"id": 3}).encode("utf-8"),
        }

        assert await subscriber.process_message(message) is True
        handler.assert_called_once_with("user-20", "message-broadcast", {"id": 3})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("message_type", ["psubscribe", "subscribe", "punsubscribe"])
    async def test_subscription_notices_ignored(self, subscriber, handler, message_type) -> None:
        assert await subscriber.process_message({"type": message_type, "channel": "x", "data": 1}) is False
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_foreign_channel_ignored(self, subscriber, handler) -> None:
        message = {"type": "pmessage", "channel": "school_bus:other:trip-1", "data": envelope("x", None)}

        assert await subscriber.process_message(message) is False
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_json_logged(self, subscriber, handler) -> None:
        message = {"type": "pmessage", "channel": "school_bus:rooms:trip-1", "data": "{oops"}

        with patch("src.services.realtime_ws.redis_subscriber.log_error", new_callable=AsyncMock) as mock_log:
            assert await subscriber.process_message(message) is False

        mock_log.assert_called_once()
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_envelope_without_event(self, subscriber, handler) -> None:
        message = {"type": "pmessage", "channel": "school_bus:rooms:trip-1", "data": json.dumps({"data": 1})}

        assert await subscriber.process_message(message) is False
        handler.assert_not_called()


class TestLifecycle:
    """Тесты запуска и остановки."""

    @pytest.mark.asyncio
    async def test_start_and_stop(self, redis, handler) -> None:
        pubsub = MagicMock()
        pubsub.psubscribe = AsyncMock()
        pubsub.punsubscribe = AsyncMock()
        pubsub.aclose = AsyncMock()
        pubsub.get_message = AsyncMock(return_value=None)
        redis.pubsub.return_value = pubsub
        subscriber = RedisSubscriber(redis, handler)

        with patch("src.services.realtime_ws.redis_subscriber.log_info", new_callable=AsyncMock):
            await subscriber.start()
            await subscriber.start()
            await subscriber.stop()

        pubsub.psubscribe.assert_called_once_with("school_bus:rooms:*")
        pubsub.punsubscribe.assert_called_once()
        pubsub.aclose.assert_called_once()
