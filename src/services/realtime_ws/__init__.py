# src/services/realtime_ws/__init__.py
"""
Realtime-шлюз: WebSocket-соединения и комнаты.

- connection_manager: реестр соединений и членство в комнатах trip-<id> и user-<id>
- gateway: обработка клиентских событий join-trip, leave-trip, location-update, ping
- broadcaster: рассылка по комнатам (в процессе или через Redis pub/sub)
- redis_subscriber: приём событий комнат из Redis для локальных соединений
"""
