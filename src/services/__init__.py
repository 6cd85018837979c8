# src/services/__init__.py
"""
Сервисы приложения.

Архитектура:
- Один процесс FastAPI (src.services.api.app) собирает роутеры всех сервисов
- Общая PostgreSQL; конкурентные переходы рейса защищены условным UPDATE
- Доменные события публикуются в RabbitMQ (best-effort)
- Redis для кэша последней точки и межпроцессной рассылки комнат

Сервисы:
- auth_service: регистрация, вход, JWT, профиль
- trip_service: рейсы, state machine, посещаемость, отзывы, отчёт
- location_service: приём GPS-точек, история, последняя позиция
- messaging_service: сообщения между ролями, диалоги, получатели
- students_service: ученики
- admin_service: справочники (автобусы, маршруты, водители)
- realtime_ws: WebSocket-шлюз, комнаты trip-<id> и user-<id>
"""

__all__: list[str] = []
