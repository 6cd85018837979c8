# src/services/realtime_ws/routes.py
"""
WebSocket-эндпоинт /ws.

Токен передаётся query-параметром token или заголовком Authorization.
Кадры в обе стороны: {"event": <имя>, "data": <полезная нагрузка>}.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from src.common.constants import ServerEvent, TypeMsg
from src.common.logger import log_info, log_warning
from src.infra.database import DatabaseManager
from src.services.auth_service.security import decode_access_token, extract_bearer
from src.services.location_service.dependencies import get_location_service
from src.services.realtime_ws.connection_manager import ConnectionManager
from src.services.realtime_ws.dependencies import get_connection_manager
from src.services.realtime_ws.gateway import RealtimeGateway
from src.services.trip_service.repository import TripRepository
from src.shared.errors import Unauthenticated

router = APIRouter(tags=["Realtime"])

# Код закрытия для отклонённого рукопожатия (диапазон 4000-4999 для приложений)
WS_CLOSE_UNAUTHENTICATED = 4401


def get_realtime_gateway() -> RealtimeGateway:
    return RealtimeGateway(
        manager=get_connection_manager(),
        trips=TripRepository(DatabaseManager()),
        locations=get_location_service(),
    )


@router.websocket("/ws")
async def realtime_endpoint(
    websocket: WebSocket,
    token: str | None = Query(default=None),
    manager: ConnectionManager = Depends(get_connection_manager),
    gateway: RealtimeGateway = Depends(get_realtime_gateway),
) -> None:
    try:
        user = decode_access_token(token or extract_bearer(websocket.headers.get("authorization")))
    except Unauthenticated as e:
        await log_warning(f"Realtime: рукопожатие отклонено ({e.message})")
        await websocket.close(code=WS_CLOSE_UNAUTHENTICATED)
        return

    await websocket.accept()
    conn = manager.register(websocket, user)
    await log_info(
        f"Realtime: подключение {conn.connection_id} (user {user.id}, {user.role})",
        type_msg=TypeMsg.INFO,
    )
    await manager.send(conn.connection_id, ServerEvent.CONNECTED, {"userId": user.id, "role": user.role.value})

    try:
        while True:
            raw = await websocket.receive_text()
            await gateway.handle_raw(conn, raw)
    except WebSocketDisconnect:
        pass
    finally:
        rooms = manager.unregister(conn.connection_id)
        await log_info(
            f"Realtime: отключение {conn.connection_id}, покинуто комнат: {len(rooms)}",
            type_msg=TypeMsg.INFO,
        )
