# src/shared/events/__init__.py
"""
Схемы доменных событий для RabbitMQ.

- trip_events: создание, старт, завершение, отмена рейса; посещаемость; отзывы
- message_events: отправка сообщения

Все события содержат event_id для дедупликации на стороне потребителя.
"""

from src.shared.events.base import DomainEvent, EventMetadata
from src.shared.events.trip_events import (
    TripCreated,
    TripStarted,
    TripCompleted,
    TripCancelled,
    AttendanceMarked,
    FeedbackSubmitted,
)
from src.shared.events.message_events import MessageSent

__all__ = [
    "DomainEvent",
    "EventMetadata",
    "TripCreated",
    "TripStarted",
    "TripCompleted",
    "TripCancelled",
    "AttendanceMarked",
    "FeedbackSubmitted",
    "MessageSent",
]
