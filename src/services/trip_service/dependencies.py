from src.infra.database import DatabaseManager
from src.infra.event_bus import get_event_bus
from src.services.realtime_ws.dependencies import get_broadcaster
from src.services.trip_service.repository import TripRepository
from src.services.trip_service.service import TripService


def get_trip_repository() -> TripRepository:
    return TripRepository(DatabaseManager())


def get_trip_service() -> TripService:
    return TripService(get_trip_repository(), get_event_bus(), get_broadcaster())
