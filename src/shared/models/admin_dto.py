from typing import Optional

from src.shared.models.common import ApiModel
from src.shared.models.enums import BusStatus


class BusDTO(ApiModel):
    id: int
    number_plate: str
    bus_name: Optional[str] = None
    capacity: int
    status: BusStatus = BusStatus.ACTIVE


class RouteDTO(ApiModel):
    id: int
    route_name: str
    estimated_time: Optional[str] = None


class DriverDTO(ApiModel):
    id: int
    user_id: int
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
