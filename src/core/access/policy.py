# src/core/access/policy.py
"""
Предикаты доступа к рейсам, ученикам и отзывам.

Чистые функции без ввода-вывода: принимают субъекта и представление
ресурса, возвращают решение. REST-обработчики и realtime-шлюз используют
одни и те же функции, поэтому правило "кто видит рейс" определено один раз.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.shared.models.enums import TripAction, TripStatus, UserRole
from src.shared.models.user_dto import AuthUser


# =============================================================================
# ПРЕДСТАВЛЕНИЯ РЕСУРСОВ
# =============================================================================

@dataclass(frozen=True)
class PassengerLink:
    """Ученик в списке рейса и user_id его родителя (None, если родитель не привязан)."""
    student_id: int
    parent_user_id: int | None = None


@dataclass(frozen=True)
class TripAccess:
    """Минимальный срез рейса, достаточный для решений о доступе."""
    trip_id: int
    status: TripStatus
    driver_user_id: int
    trip_date: datetime | None = None
    passengers: tuple[PassengerLink, ...] = ()

    @property
    def parent_user_ids(self) -> frozenset[int]:
        return frozenset(p.parent_user_id for p in self.passengers if p.parent_user_id is not None)

    def student_ids_of_parent(self, parent_user_id: int) -> frozenset[int]:
        return frozenset(p.student_id for p in self.passengers if p.parent_user_id == parent_user_id)


class ScopeKind(str, Enum):
    ALL = "all"
    DRIVER = "driver"
    PARENT = "parent"
    NONE = "none"


@dataclass(frozen=True)
class TripScope:
    """
    Сужающий фильтр для списков: хранилище переводит его в условие WHERE.

    DRIVER — рейсы, где водитель назначен; PARENT — рейсы, в списке которых
    есть ребёнок родителя. statuses ограничивает статусы (пусто — любые).
    """
    kind: ScopeKind
    user_id: int | None = None
    statuses: tuple[TripStatus, ...] = field(default=())


# =============================================================================
# РЕЙСЫ
# =============================================================================

def can_view_trip(user: AuthUser, trip: TripAccess) -> bool:
    """ADMIN — любой рейс; DRIVER — свой; PARENT — если его ребёнок в списке рейса."""
    if user.role == UserRole.ADMIN:
        return True
    if user.role == UserRole.DRIVER:
        return trip.driver_user_id == user.id
    if user.role == UserRole.PARENT:
        return user.id in trip.parent_user_ids
    return False


def can_join_trip_room(user: AuthUser, trip: TripAccess) -> bool:
    """Вход в комнату рейса разрешён тем же, кто может видеть рейс через REST."""
    return can_view_trip(user, trip)


def can_act_on_trip(user: AuthUser, trip: TripAccess | None, action: TripAction) -> bool:
    """
    start/end/markAttendance — только назначенный водитель;
    create/cancel — только администратор (trip для create не нужен).
    """
    if action in (TripAction.CREATE, TripAction.CANCEL):
        return user.role == UserRole.ADMIN

    if action in (TripAction.START, TripAction.END, TripAction.MARK_ATTENDANCE):
        return trip is not None and user.role == UserRole.DRIVER and can_view_trip(user, trip)

    return False


def trip_scope_for(user: AuthUser) -> TripScope:
    """Фильтр списка рейсов для роли пользователя."""
    if user.role == UserRole.ADMIN:
        return TripScope(kind=ScopeKind.ALL)
    if user.role == UserRole.DRIVER:
        return TripScope(kind=ScopeKind.DRIVER, user_id=user.id)
    if user.role == UserRole.PARENT:
        return TripScope(kind=ScopeKind.PARENT, user_id=user.id)
    return TripScope(kind=ScopeKind.NONE)


def visible_passengers(user: AuthUser, trip: TripAccess) -> frozenset[int] | None:
    """
    Какие ученики рейса видны пользователю в деталях рейса.
    None — все; для родителя — только его дети.
    """
    if user.role == UserRole.PARENT:
        return trip.student_ids_of_parent(user.id)
    return None


# =============================================================================
# ОТЗЫВЫ
# =============================================================================

def can_submit_feedback(
    user: AuthUser,
    trip: TripAccess,
    student_id: int | None = None,
    already_submitted: bool = False,
) -> bool:
    """
    Отзыв оставляет родитель, у которого есть ребёнок в списке рейса.
    Если указан student_id — это должен быть его ребёнок на этом рейсе.
    Повторный отзыв для той же тройки (рейс, родитель, ученик) запрещён.
    """
    if user.role != UserRole.PARENT:
        return False

    own_students = trip.student_ids_of_parent(user.id)
    if not own_students:
        return False
    if student_id is not None and student_id not in own_students:
        return False

    return not already_submitted


def can_view_all_feedback(user: AuthUser, trip: TripAccess) -> bool:
    """Все отзывы рейса видят администратор и назначенный водитель; родитель — только свои."""
    if user.role == UserRole.ADMIN:
        return True
    return user.role == UserRole.DRIVER and can_view_trip(user, trip)


# =============================================================================
# УЧЕНИКИ
# =============================================================================

DRIVER_VISIBLE_TRIP_STATUSES: tuple[TripStatus, ...] = (TripStatus.SCHEDULED, TripStatus.IN_PROGRESS)


def student_scope_for(user: AuthUser) -> TripScope:
    """
    Фильтр списка учеников: ADMIN — все; PARENT — свои дети;
    DRIVER — ученики на его рейсах в статусе SCHEDULED/IN_PROGRESS.
    """
    if user.role == UserRole.DRIVER:
        return TripScope(kind=ScopeKind.DRIVER, user_id=user.id, statuses=DRIVER_VISIBLE_TRIP_STATUSES)
    return trip_scope_for(user)


def can_manage_student(user: AuthUser, student_parent_user_id: int | None) -> bool:
    """Изменять ученика может администратор или его родитель."""
    if user.role == UserRole.ADMIN:
        return True
    return user.role == UserRole.PARENT and student_parent_user_id == user.id
