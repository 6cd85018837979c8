from src.config import settings
from src.infra.database import DatabaseManager
from src.infra.event_bus import get_event_bus
from src.services.messaging_service.repository import MessageRepository
from src.services.messaging_service.service import MessagingService
from src.services.realtime_ws.dependencies import get_broadcaster


def get_message_repository() -> MessageRepository:
    return MessageRepository(DatabaseManager())


def get_messaging_service() -> MessagingService:
    return MessagingService(
        get_message_repository(),
        get_event_bus(),
        get_broadcaster(),
        recent_days=settings.trips.MESSAGING_RECENT_TRIP_DAYS,
    )
