# src/shared/events/trip_events.py
"""
События домена рейсов: создание, переходы состояния, посещаемость, отзывы.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from src.shared.events.base import DomainEvent


class TripCreated(DomainEvent):
    """Событие: администратор создал рейс."""

    event_type: Literal["trip.created"] = "trip.created"

    trip_id: int
    trip_label: str
    trip_date: datetime
    driver_id: int
    bus_id: int
    route_id: int
    student_ids: list[int] = []


class TripStarted(DomainEvent):
    """Событие: водитель начал рейс (SCHEDULED -> IN_PROGRESS)."""

    event_type: Literal["trip.started"] = "trip.started"

    trip_id: int
    driver_user_id: int
    started_at: datetime


class TripCompleted(DomainEvent):
    """
    Событие: рейс завершён (IN_PROGRESS -> COMPLETED).
    Потребляется внешним генератором отчётов и уведомлений.
    """

    event_type: Literal["trip.completed"] = "trip.completed"

    trip_id: int
    driver_user_id: int
    completed_at: datetime


class TripCancelled(DomainEvent):
    """Событие: администратор отменил рейс (SCHEDULED -> CANCELLED)."""

    event_type: Literal["trip.cancelled"] = "trip.cancelled"

    trip_id: int
    cancelled_by: int
    cancelled_at: datetime


class AttendanceMarked(DomainEvent):
    """Событие: водитель отметил ученика."""

    event_type: Literal["attendance.marked"] = "attendance.marked"

    trip_id: int
    student_id: int
    status: str
    marked_by: int


class FeedbackSubmitted(DomainEvent):
    """Событие: родитель оставил отзыв о рейсе."""

    event_type: Literal["feedback.submitted"] = "feedback.submitted"

    trip_id: int
    parent_id: int
    student_id: int | None = None
    rating: int
