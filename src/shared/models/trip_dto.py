from datetime import datetime
from typing import Optional, List

from pydantic import Field

from src.shared.models.common import ApiModel
from src.shared.models.admin_dto import BusDTO, RouteDTO, DriverDTO
from src.shared.models.enums import AttendanceStatus, TripStatus


class PassengerDTO(ApiModel):
    """Ученик из списка рейса (trip_attendance_list)."""
    student_id: int
    first_name: str
    last_name: str
    admission: int
    grade: Optional[int] = None
    parent_id: Optional[int] = None


class AttendanceDTO(ApiModel):
    id: int
    trip_id: int
    student_id: int
    status: AttendanceStatus
    timestamp: datetime
    marked_by: int


class TripDTO(ApiModel):
    id: int
    trip_label: str
    trip_name: Optional[str] = None
    trip_date: datetime
    status: TripStatus = TripStatus.SCHEDULED
    bus_id: int
    route_id: int
    driver_id: int
    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    passengers: Optional[List[PassengerDTO]] = None


class TripDetailDTO(TripDTO):
    bus: Optional[BusDTO] = None
    route: Optional[RouteDTO] = None
    driver: Optional[DriverDTO] = None
    attendance: List[AttendanceDTO] = Field(default_factory=list)


class CreateTripRequest(ApiModel):
    bus_id: int
    route_id: int
    driver_id: int
    student_ids: List[int] = Field(default_factory=list)
    trip_date: Optional[datetime] = None
    trip_name: Optional[str] = None


class MarkAttendanceRequest(ApiModel):
    student_id: int
    status: AttendanceStatus


class TripTransitionResponse(ApiModel):
    message: str
    trip: TripDTO


class FeedbackDTO(ApiModel):
    id: int
    trip_id: int
    parent_id: int
    student_id: Optional[int] = None
    rating: int
    comment: Optional[str] = None
    created_at: datetime


class SubmitFeedbackRequest(ApiModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=2000)
    student_id: Optional[int] = None


class LocationStats(ApiModel):
    sample_count: int = 0
    first_captured_at: Optional[datetime] = None
    last_captured_at: Optional[datetime] = None


class TripReportDTO(ApiModel):
    """Данные отчёта по рейсу; рендер PDF выполняет внешний генератор."""
    trip: TripDetailDTO
    locations: LocationStats
    feedback: List[FeedbackDTO] = Field(default_factory=list)
    generated_at: datetime
