# src/core/access/messaging.py
"""
Правила мессенджера: кто кому может писать и какой тип у сообщения.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from src.shared.models.enums import MessageType, TripStatus, UserRole
from src.shared.models.user_dto import AuthUser

DEFAULT_RECENT_TRIP_DAYS = 7

NOTIFICATION_SENDER_ROLES = frozenset({UserRole.ADMIN, UserRole.DRIVER})


@dataclass(frozen=True)
class SharedTrip:
    """Рейс, где водитель назначен, а у родителя есть ребёнок в списке."""
    trip_id: int
    status: TripStatus
    trip_date: datetime


def resolve_default_message_type(role: UserRole | str | None) -> MessageType:
    """
    Тип сообщения, если отправитель его не указал.

    ADMIN/DRIVER -> notification, PARENT -> feedback, иначе chat.
    Обычный чат от родителя тоже получает тип feedback; правило оставлено
    как есть до решения продукта и меняется только здесь.
    """
    if role in (UserRole.ADMIN, UserRole.DRIVER):
        return MessageType.NOTIFICATION
    if role == UserRole.PARENT:
        return MessageType.FEEDBACK
    return MessageType.CHAT


def can_send_message_type(role: UserRole, message_type: MessageType) -> bool:
    """notification могут отправлять только ADMIN и DRIVER."""
    if message_type == MessageType.NOTIFICATION:
        return role in NOTIFICATION_SENDER_ROLES
    return True


def is_active_or_recent(
    trip: SharedTrip,
    now: datetime,
    recent_days: int = DEFAULT_RECENT_TRIP_DAYS,
) -> bool:
    """
    Рейс активен (IN_PROGRESS) или его дата не старше recent_days.
    Будущие рейсы тоже проходят по дате: родитель может написать водителю
    сразу после того, как ребёнка добавили в запланированный рейс.
    """
    if trip.status == TripStatus.IN_PROGRESS:
        return True

    trip_date = trip.trip_date
    if trip_date.tzinfo is None:
        trip_date = trip_date.replace(tzinfo=timezone.utc)
    return trip_date >= now - timedelta(days=recent_days)


def can_message(
    sender: AuthUser,
    receiver: AuthUser,
    shared_trips: list[SharedTrip] | tuple[SharedTrip, ...] = (),
    now: datetime | None = None,
    recent_days: int = DEFAULT_RECENT_TRIP_DAYS,
) -> bool:
    """
    ADMIN <-> кто угодно: да.
    DRIVER <-> PARENT: только при общем активном или недавнем рейсе.
    DRIVER <-> DRIVER, PARENT <-> PARENT: нет.
    """
    roles = {sender.role, receiver.role}

    if UserRole.ADMIN in roles:
        return True

    if roles == {UserRole.DRIVER, UserRole.PARENT}:
        now = now or datetime.now(timezone.utc)
        return any(is_active_or_recent(trip, now, recent_days) for trip in shared_trips)

    return False


def counterpart_pair(sender: AuthUser, receiver: AuthUser) -> tuple[int, int] | None:
    """(driver_user_id, parent_user_id) для пары водитель-родитель, иначе None."""
    if sender.role == UserRole.DRIVER and receiver.role == UserRole.PARENT:
        return sender.id, receiver.id
    if sender.role == UserRole.PARENT and receiver.role == UserRole.DRIVER:
        return receiver.id, sender.id
    return None
