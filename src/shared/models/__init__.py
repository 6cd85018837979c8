# src/shared/models/__init__.py
"""
DTO и Pydantic-модели публичного API и слоя хранения.
"""

from src.shared.models.common import ApiModel, ErrorResponse, HealthStatus, MessageResponse
from src.shared.models.enums import (
    AttendanceStatus,
    BusStatus,
    MessageType,
    TripAction,
    TripStatus,
    UserRole,
)
from src.shared.models.user_dto import AuthUser, UserDTO, UserSummary
from src.shared.models.trip_dto import TripDTO, TripDetailDTO, AttendanceDTO, FeedbackDTO
from src.shared.models.location_dto import LocationSampleDTO, LocationBroadcast
from src.shared.models.message_dto import MessageDTO, ConversationDTO, RecipientDTO
from src.shared.models.student_dto import StudentDTO
from src.shared.models.admin_dto import BusDTO, RouteDTO, DriverDTO

__all__ = [
    "ApiModel",
    "ErrorResponse",
    "HealthStatus",
    "MessageResponse",
    "AttendanceStatus",
    "BusStatus",
    "MessageType",
    "TripAction",
    "TripStatus",
    "UserRole",
    "AuthUser",
    "UserDTO",
    "UserSummary",
    "TripDTO",
    "TripDetailDTO",
    "AttendanceDTO",
    "FeedbackDTO",
    "LocationSampleDTO",
    "LocationBroadcast",
    "MessageDTO",
    "ConversationDTO",
    "RecipientDTO",
    "StudentDTO",
    "BusDTO",
    "RouteDTO",
    "DriverDTO",
]
