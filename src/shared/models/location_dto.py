from datetime import datetime
from typing import Any, Optional

from src.shared.models.common import ApiModel


class LocationSampleDTO(ApiModel):
    id: int
    trip_id: int
    driver_id: int
    latitude: float
    longitude: float
    speed: Optional[float] = None
    heading: Optional[float] = None
    captured_at: datetime


class SubmitLocationRequest(ApiModel):
    """
    Координаты не типизированы как float: их проверка идёт после проверок
    роли и рейса, чтобы порядок ошибок совпадал с realtime-каналом.
    """
    trip_id: int
    latitude: Any = None
    longitude: Any = None
    speed: Any = None
    heading: Any = None


class LocationBrief(ApiModel):
    id: int
    latitude: float
    longitude: float
    timestamp: datetime


class SubmitLocationResponse(ApiModel):
    message: str
    location: LocationBrief


class LocationBroadcast(ApiModel):
    """Полезная нагрузка события location-broadcast."""
    trip_id: int
    latitude: float
    longitude: float
    speed: Optional[float] = None
    heading: Optional[float] = None
    timestamp: datetime
