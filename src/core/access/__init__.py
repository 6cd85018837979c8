# src/core/access/__init__.py
"""
Предикаты авторизации.
"""

from src.core.access.policy import (
    PassengerLink,
    ScopeKind,
    TripAccess,
    TripScope,
    can_act_on_trip,
    can_join_trip_room,
    can_manage_student,
    can_submit_feedback,
    can_view_all_feedback,
    can_view_trip,
    student_scope_for,
    trip_scope_for,
    visible_passengers,
)
from src.core.access.messaging import (
    SharedTrip,
    can_message,
    can_send_message_type,
    counterpart_pair,
    resolve_default_message_type,
)

__all__ = [
    "PassengerLink",
    "ScopeKind",
    "TripAccess",
    "TripScope",
    "can_act_on_trip",
    "can_join_trip_room",
    "can_manage_student",
    "can_submit_feedback",
    "can_view_all_feedback",
    "can_view_trip",
    "student_scope_for",
    "trip_scope_for",
    "visible_passengers",
    "SharedTrip",
    "can_message",
    "can_send_message_type",
    "counterpart_pair",
    "resolve_default_message_type",
]
