# tests/realtime/test_connection_manager.py
"""
Тесты реестра realtime-соединений.
"""

from __future__ import annotations

import pytest

from src.services.realtime_ws.connection_manager import ConnectionManager, trip_room, user_room
from src.shared.models.user_dto import AuthUser


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


class TestRooms:
    """Тесты членства в комнатах."""

    def test_room_names(self) -> None:
        assert trip_room(7) == "trip-7"
        assert user_room(20) == "user-20"

    def test_register_joins_inbox(self, manager, fake_websocket_factory, parent: AuthUser) -> None:
        conn = manager.register(fake_websocket_factory(), parent)

        assert manager.rooms_of(conn.connection_id) == {"user-20"}
        assert manager.members_of("user-20") == {conn.connection_id}
        assert manager.active_connections == 1

    def test_join_is_idempotent(self, manager, fake_websocket_factory, parent) -> None:
        conn = manager.register(fake_websocket_factory(), parent)

        assert manager.join(conn.connection_id, "trip-1") is True
        assert manager.join(conn.connection_id, "trip-1") is False
        assert manager.members_of("trip-1") == {conn.connection_id}

    def test_join_unknown_connection(self, manager) -> None:
        assert manager.join("missing", "trip-1") is False
        assert manager.members_of("trip-1") == set()

    def test_leave(self, manager, fake_websocket_factory, parent) -> None:
        conn = manager.register(fake_websocket_factory(), parent)
        manager.join(conn.connection_id, "trip-1")

        assert manager.leave(conn.connection_id, "trip-1") is True
        assert manager.leave(conn.connection_id, "trip-1") is False
        assert manager.members_of("trip-1") == set()
        assert manager.get_stats()["total_rooms"] == 1

    def test_unregister_clears_membership(self, manager, fake_websocket_factory, parent) -> None:
        conn = manager.register(fake_websocket_factory(), parent)
        manager.join(conn.connection_id, "trip-1")

        rooms = manager.unregister(conn.connection_id)

        assert rooms == {"user-20", "trip-1"}
        assert manager.members_of("trip-1") == set()
        assert manager.active_connections == 0
        assert manager.get_stats()["total_rooms"] == 0
        assert manager.unregister(conn.connection_id) == set()

    def test_several_connections_per_user(self, manager, fake_websocket_factory, parent) -> None:
        phone = manager.register(fake_websocket_factory(), parent)
        browser = manager.register(fake_websocket_factory(), parent)

        assert phone.connection_id != browser.connection_id
        assert manager.members_of("user-20") == {phone.connection_id, browser.connection_id}


class TestDelivery:
    """Тесты отправки событий."""

    @pytest.mark.asyncio
    async def test_emit_to_room_includes_sender(self, manager, fake_websocket_factory, driver, parent, other_parent) -> None:
        driver_ws, parent_ws, outsider_ws = fake_websocket_factory(), fake_websocket_factory(), fake_websocket_factory()
        driver_conn = manager.register(driver_ws, driver)
        parent_conn = manager.register(parent_ws, parent)
        manager.register(outsider_ws, other_parent)
        manager.join(driver_conn.connection_id, "trip-1")
        manager.join(parent_conn.connection_id, "trip-1")

        delivered = await manager.emit_to_room("trip-1", "location-broadcast", {"tripId": 1})

        assert delivered == 2
        assert driver_ws.sent == [{"event": "location-broadcast", "data": {"tripId": 1}}]
        assert parent_ws.sent == driver_ws.sent
        assert outsider_ws.sent == []

    @pytest.mark.asyncio
    async def test_emit_to_empty_room(self, manager) -> None:
        assert await manager.emit_to_room("trip-404", "trip-started", {}) == 0

    @pytest.mark.asyncio
    async def test_failed_send_drops_connection(self, manager, fake_websocket_factory, parent) -> None:
        conn = manager.register(fake_websocket_factory(fail=True), parent)

        assert await manager.send(conn.connection_id, "pong", None) is False
        assert manager.get(conn.connection_id) is None
        assert manager.members_of("user-20") == set()

    @pytest.mark.asyncio
    async def test_stats(self, manager, fake_websocket_factory, driver, parent) -> None:
        conn = manager.register(fake_websocket_factory(), driver)
        manager.register(fake_websocket_factory(), parent)
        await manager.send(conn.connection_id, "pong", None)

        stats = manager.get_stats()

        assert stats["active_connections"] == 2
        assert stats["total_messages_sent"] == 1
        assert stats["connections_by_role"] == {"DRIVER": 1, "PARENT": 1}
