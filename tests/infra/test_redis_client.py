# tests/infra/test_redis_client.py
"""
Тесты для клиента Redis.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.infra.redis_client import RedisClient
from src.shared.models.location_dto import LocationSampleDTO


class TestRedisClient:
    """Тесты для RedisClient."""

    @pytest.fixture
    def redis_client(self) -> RedisClient:
        RedisClient._instance = None
        RedisClient._client = None
        return RedisClient()

    @pytest.fixture
    def connected(self, redis_client: RedisClient) -> tuple[RedisClient, AsyncMock]:
        mock = AsyncMock()
        redis_client._client = mock
        return redis_client, mock

    def test_singleton(self) -> None:
        RedisClient._instance = None
        assert RedisClient() is RedisClient()

    def test_client_not_initialized(self, redis_client: RedisClient) -> None:
        with pytest.raises(RuntimeError, match="Redis клиент не инициализирован"):
            _ = redis_client.client
        assert redis_client.is_connected is False

    def test_namespace(self, redis_client: RedisClient) -> None:
        assert redis_client.make_key("trip:1:latest_location") == "school_bus:trip:1:latest_location"
        assert redis_client.strip_namespace("school_bus:rooms:trip-1") == "rooms:trip-1"
        assert redis_client.strip_namespace("other:rooms:trip-1") == "other:rooms:trip-1"

    @pytest.mark.asyncio
    async def test_connect_pings(self, redis_client: RedisClient) -> None:
        mock = AsyncMock()
        with patch("redis.asyncio.from_url", return_value=mock):
            await redis_client.connect("redis://localhost:6379/0", namespace="school_bus_test")

        mock.ping.assert_called_once()
        assert redis_client.make_key("k") == "school_bus_test:k"

    @pytest.mark.asyncio
    async def test_set_with_ttl(self, connected: tuple[RedisClient, AsyncMock]) -> None:
        client, mock = connected
        mock.set.return_value = True

        assert await client.set("key", "value", ttl=60) is True
        mock.set.assert_called_once_with("school_bus:key", "value", ex=60)

    @pytest.mark.asyncio
    async def test_model_roundtrip(self, connected: tuple[RedisClient, AsyncMock]) -> None:
        client, mock = connected
        sample = LocationSampleDTO(
            id=1, trip_id=3, driver_id=110, latitude=10.5, longitude=20.25,
            captured_at=datetime(2026, 1, 1, 8, 0, tzinfo=timezone.utc),
        )

        await client.set_model("trip:3:latest_location", sample, ttl=300)
        stored = mock.set.call_args.args[1]
        mock.get.return_value = stored

        restored = await client.get_model("trip:3:latest_location", LocationSampleDTO)
        assert restored == sample

    @pytest.mark.asyncio
    async def test_get_model_corrupted_is_miss(self, connected: tuple[RedisClient, AsyncMock]) -> None:
        client, mock = connected
        mock.get.return_value = "not json"

        assert await client.get_model("trip:3:latest_location", LocationSampleDTO) is None

    @pytest.mark.asyncio
    async def test_publish_json(self, connected: tuple[RedisClient, AsyncMock]) -> None:
        client, mock = connected
        mock.publish.return_value = 2

        count = await client.publish("rooms:trip-1", {"event": "location-broadcast", "data": {"tripId": 1}})

        assert count == 2
        channel, message = mock.publish.call_args.args
        assert channel == "school_bus:rooms:trip-1"
        assert json.loads(message)["event"] == "location-broadcast"

    def test_pubsub_uses_client(self, connected: tuple[RedisClient, AsyncMock]) -> None:
        client, mock = connected
        mock.pubsub = MagicMock(return_value="pubsub")
        assert client.pubsub() == "pubsub"

    @pytest.mark.asyncio
    async def test_health_check_failure(self, connected: tuple[RedisClient, AsyncMock]) -> None:
        client, mock = connected
        mock.ping.side_effect = ConnectionError("down")

        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_disconnect(self, connected: tuple[RedisClient, AsyncMock]) -> None:
        client, mock = connected

        await client.disconnect()

        mock.aclose.assert_called_once()
        assert client.is_connected is False
