# tests/realtime/test_gateway.py
"""
Тесты обработчика клиентских событий realtime-шлюза.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from src.services.location_service.service import LocationService, TripLocks
from src.services.realtime_ws.broadcaster import LocalBroadcaster
from src.services.realtime_ws.connection_manager import ConnectionManager
from src.services.realtime_ws.gateway import RealtimeGateway, parse_envelope, parse_trip_id
from src.shared.errors import InvalidArgument
from src.shared.models.enums import TripStatus


def frame(event: str, data=None) -> str:
    return json.dumps({"event": event, "data": data})


class TestParsing:
    """Тесты разбора кадров."""

    @pytest.mark.parametrize("value, expected", [(3, 3), ("3", 3), (" 12 ", 12), ({"tripId": 5}, 5), ({"tripId": "6"}, 6)])
    def test_trip_id_accepted(self, value, expected) -> None:
        assert parse_trip_id(value) == expected

    @pytest.mark.parametrize("value", [None, True, "abc", "1.5", 2.0, {}, [1]])
    def test_trip_id_rejected(self, value) -> None:
        with pytest.raises(InvalidArgument, match="Invalid trip id"):
            parse_trip_id(value)

    def test_envelope(self) -> None:
        assert parse_envelope(frame("ping", {"t": 1})) == ("ping", {"t": 1})

    @pytest.mark.parametrize("raw", ["not json", "[]", '{"data": 1}', '{"event": 5}'])
    def test_envelope_rejected(self, raw) -> None:
        with pytest.raises(InvalidArgument, match="Invalid message format"):
            parse_envelope(raw)


class TestGateway:
    """Тесты RealtimeGateway на in-memory хранилище."""

    @pytest.fixture
    def manager(self) -> ConnectionManager:
        return ConnectionManager()

    @pytest.fixture
    def gateway(self, manager, scenario_store) -> RealtimeGateway:
        locations = LocationService(scenario_store, scenario_store, LocalBroadcaster(manager), locks=TripLocks())
        return RealtimeGateway(manager, scenario_store, locations)

    @pytest.fixture
    def connect(self, manager, fake_websocket_factory):
        def _connect(user):
            ws = fake_websocket_factory()
            return manager.register(ws, user), ws
        return _connect

    @pytest.mark.asyncio
    async def test_join_trip(self, gateway, manager, connect, parent) -> None:
        conn, ws = connect(parent)

        await gateway.handle_raw(conn, frame("join-trip", 1))

        assert "trip-1" in manager.rooms_of(conn.connection_id)
        assert ws.events("joined-trip")[0]["data"] == {"tripId": 1, "message": "Joined trip 1"}

    @pytest.mark.asyncio
    async def test_join_twice_acknowledged_twice(self, gateway, manager, connect, parent) -> None:
        conn, ws = connect(parent)

        await gateway.handle_raw(conn, frame("join-trip", {"tripId": 1}))
        await gateway.handle_raw(conn, frame("join-trip", "1"))

        assert len(ws.events("joined-trip")) == 2
        assert manager.members_of("trip-1") == {conn.connection_id}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("trip_id", [2, 999])
    async def test_join_forbidden(self, gateway, manager, connect, parent, trip_id) -> None:
        conn, ws = connect(parent)

        await gateway.handle_raw(conn, frame("join-trip", trip_id))

        assert ws.events("error")[0]["data"] == {"message": "Forbidden: You do not have access to this trip"}
        assert manager.rooms_of(conn.connection_id) == {"user-20"}

    @pytest.mark.asyncio
    async def test_leave_trip(self, gateway, manager, connect, driver) -> None:
        conn, ws = connect(driver)
        await gateway.handle_raw(conn, frame("join-trip", 1))

        await gateway.handle_raw(conn, frame("leave-trip", 1))
        await gateway.handle_raw(conn, frame("leave-trip", 1))

        assert manager.members_of("trip-1") == set()
        assert [f["data"] for f in ws.events("left-trip")] == [{"tripId": 1}, {"tripId": 1}]

    @pytest.mark.asyncio
    async def test_ping(self, gateway, connect, parent) -> None:
        conn, ws = connect(parent)
        await gateway.handle_raw(conn, frame("ping", {"ts": 123}))
        assert ws.events("pong")[0]["data"] == {"ts": 123}

    @pytest.mark.asyncio
    async def test_unknown_event_and_garbage(self, gateway, connect, parent) -> None:
        conn, ws = connect(parent)

        await gateway.handle_raw(conn, frame("dance"))
        await gateway.handle_raw(conn, "{{{")

        assert [f["data"]["message"] for f in ws.events("error")] == ["Unknown event: dance", "Invalid message format"]

    @pytest.mark.asyncio
    async def test_location_update_broadcasts_to_room(self, gateway, scenario_store, connect, driver, parent) -> None:
        scenario_store.trips[1]["status"] = TripStatus.IN_PROGRESS
        driver_conn, driver_ws = connect(driver)
        parent_conn, parent_ws = connect(parent)
        await gateway.handle_raw(parent_conn, frame("join-trip", 1))
        await gateway.handle_raw(driver_conn, frame("join-trip", 1))

        await gateway.handle_raw(driver_conn, frame("location-update", {"tripId": 1, "latitude": 1.5, "longitude": 2.5}))

        [broadcast] = parent_ws.events("location-broadcast")
        assert broadcast["data"]["latitude"] == 1.5
        assert driver_ws.events("location-broadcast")
        assert len(scenario_store.locations) == 1

    @pytest.mark.asyncio
    async def test_location_update_without_room_membership_still_persists(self, gateway, scenario_store, connect, driver) -> None:
        scenario_store.trips[1]["status"] = TripStatus.IN_PROGRESS
        conn, ws = connect(driver)

        await gateway.handle_raw(conn, frame("location-update", {"tripId": 1, "latitude": 1, "longitude": 2}))

        assert len(scenario_store.locations) == 1
        assert ws.events("error") == []

    @pytest.mark.asyncio
    async def test_location_update_missing_fields(self, gateway, connect, driver) -> None:
        conn, ws = connect(driver)

        await gateway.handle_raw(conn, frame("location-update", {"tripId": 1, "latitude": 1}))

        assert ws.events("error")[0]["data"]["message"] == "tripId, latitude, and longitude are required"

    @pytest.mark.asyncio
    async def test_location_update_from_parent(self, gateway, connect, parent) -> None:
        conn, ws = connect(parent)

        await gateway.handle_raw(conn, frame("location-update", {"tripId": 1, "latitude": 1, "longitude": 2}))

        assert ws.events("error")[0]["data"]["message"] == "Forbidden: Only drivers can update location"

    @pytest.mark.asyncio
    async def test_location_update_trip_not_started(self, gateway, connect, driver) -> None:
        conn, ws = connect(driver)

        await gateway.handle_raw(conn, frame("location-update", {"tripId": 1, "latitude": 1, "longitude": 2}))

        assert ws.events("error")[0]["data"]["message"].startswith("Forbidden: You are not assigned")

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self, gateway, connect, parent) -> None:
        gateway.trips = AsyncMock()
        gateway.trips.find_trip_access.side_effect = RuntimeError("pool closed")
        conn, ws = connect(parent)

        await gateway.handle_raw(conn, frame("join-trip", 1))

        assert ws.events("error")[0]["data"] == {"message": "Internal server error"}
