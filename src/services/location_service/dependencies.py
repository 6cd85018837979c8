from src.config import settings
from src.infra.database import DatabaseManager
from src.infra.redis_client import get_redis
from src.services.location_service.repository import LocationRepository
from src.services.location_service.service import LocationService
from src.services.realtime_ws.dependencies import get_broadcaster
from src.services.trip_service.repository import TripRepository


def get_location_repository() -> LocationRepository:
    return LocationRepository(DatabaseManager())


def get_location_service() -> LocationService:
    db = DatabaseManager()
    return LocationService(
        repository=LocationRepository(db),
        trips=TripRepository(db),
        broadcaster=get_broadcaster(),
        redis=get_redis(),
        history_limit=settings.trips.LOCATION_HISTORY_LIMIT,
        latest_ttl=settings.realtime.LATEST_LOCATION_TTL,
    )
