import time
from datetime import date, datetime, timezone
from typing import List, Optional

from src.common.constants import ServerEvent
from src.common.logger import log_info, log_warning, TypeMsg
from src.core.access import (
    TripAccess,
    can_act_on_trip,
    can_submit_feedback,
    can_view_all_feedback,
    can_view_trip,
    trip_scope_for,
    visible_passengers,
)
from src.infra.event_bus import EventBus
from src.services.realtime_ws.broadcaster import RoomBroadcaster
from src.services.realtime_ws.connection_manager import trip_room
from src.services.trip_service.repository import TripRepository
from src.services.trip_service.state_machine import TripStateMachine
from src.shared.errors import Conflict, Forbidden, InvalidArgument, InvalidTransition, NotFound
from src.shared.events.trip_events import (
    AttendanceMarked,
    FeedbackSubmitted,
    TripCancelled,
    TripCompleted,
    TripCreated,
    TripStarted,
)
from src.shared.models.enums import TripAction, UserRole
from src.shared.models.trip_dto import (
    AttendanceDTO,
    CreateTripRequest,
    FeedbackDTO,
    MarkAttendanceRequest,
    SubmitFeedbackRequest,
    TripDetailDTO,
    TripDTO,
    TripReportDTO,
)
from src.shared.models.user_dto import AuthUser

TRIP_NOT_FOUND = "Trip not found or you do not have access to this trip"

TRANSITION_EVENTS = {
    TripAction.START: ServerEvent.TRIP_STARTED,
    TripAction.END: ServerEvent.TRIP_ENDED,
    TripAction.CANCEL: ServerEvent.TRIP_CANCELLED,
}

TRANSITION_MESSAGES = {
    TripAction.START: "Trip started successfully",
    TripAction.END: "Trip ended successfully",
    TripAction.CANCEL: "Trip cancelled successfully",
}


class TripService:
    def __init__(self, repository: TripRepository, event_bus: EventBus, broadcaster: RoomBroadcaster):
        self.repository = repository
        self.event_bus = event_bus
        self.broadcaster = broadcaster

    async def _load_visible(self, user: AuthUser, trip_id: int) -> TripAccess:
        """Missing and invisible trips are reported the same way."""
        access = await self.repository.find_trip_access(trip_id)
        if access is None or not can_view_trip(user, access):
            raise NotFound(TRIP_NOT_FOUND)
        return access

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_trips(
        self,
        user: AuthUser,
        trip_date: Optional[date] = None,
        summary: bool = False,
    ) -> List[TripDTO]:
        trips = await self.repository.list_trips_for_user(trip_scope_for(user), trip_date)
        if summary or not trips:
            return trips

        passengers = await self.repository.list_passengers([trip.id for trip in trips])
        own_parent_id = None
        if user.role == UserRole.PARENT:
            own_parent_id = await self.repository.find_parent_id(user.id)

        for trip in trips:
            trip_passengers = passengers.get(trip.id, [])
            if user.role == UserRole.PARENT:
                trip_passengers = [p for p in trip_passengers if p.parent_id == own_parent_id]
            trip.passengers = trip_passengers
        return trips

    async def get_trip(self, user: AuthUser, trip_id: int) -> TripDetailDTO:
        access = await self._load_visible(user, trip_id)
        trip = await self.repository.find_trip_by_id(trip_id)
        if trip is None:
            raise NotFound(TRIP_NOT_FOUND)

        allowed = visible_passengers(user, access)
        if allowed is not None:
            trip.passengers = [p for p in trip.passengers or [] if p.student_id in allowed]
            trip.attendance = [a for a in trip.attendance if a.student_id in allowed]
        return trip

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_trip(self, user: AuthUser, request: CreateTripRequest) -> TripDTO:
        if not can_act_on_trip(user, None, TripAction.CREATE):
            raise Forbidden("Only administrators can create trips")

        bus = await self.repository.find_bus(request.bus_id)
        if bus is None:
            raise NotFound("Bus not found")
        if await self.repository.find_route(request.route_id) is None:
            raise NotFound("Route not found")
        if await self.repository.find_driver(request.driver_id) is None:
            raise NotFound("Driver not found")

        missing = await self.repository.find_missing_students(request.student_ids)
        if missing:
            raise NotFound(f"Students not found: {', '.join(str(s) for s in missing)}")

        stamp = int(time.time() * 1000)
        trip = await self.repository.create_trip(
            trip_label=f"TRIP-{stamp}-{bus.number_plate}",
            trip_name=request.trip_name or f"Trip-{stamp}",
            trip_date=request.trip_date or datetime.now(timezone.utc),
            bus_id=request.bus_id,
            route_id=request.route_id,
            driver_id=request.driver_id,
            student_ids=request.student_ids,
        )

        await log_info(f"Trip {trip.id} created ({trip.trip_label})", type_msg=TypeMsg.INFO)
        await self.event_bus.publish(TripCreated(
            trip_id=trip.id,
            trip_label=trip.trip_label,
            trip_date=trip.trip_date,
            driver_id=trip.driver_id,
            bus_id=trip.bus_id,
            route_id=trip.route_id,
            student_ids=list(dict.fromkeys(request.student_ids)),
        ))
        return trip

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def start_trip(self, user: AuthUser, trip_id: int) -> TripDTO:
        return await self._transition(user, trip_id, TripAction.START)

    async def end_trip(self, user: AuthUser, trip_id: int) -> TripDTO:
        return await self._transition(user, trip_id, TripAction.END)

    async def cancel_trip(self, user: AuthUser, trip_id: int) -> TripDTO:
        return await self._transition(user, trip_id, TripAction.CANCEL)

    async def _transition(self, user: AuthUser, trip_id: int, action: TripAction) -> TripDTO:
        access = await self._load_visible(user, trip_id)
        if not can_act_on_trip(user, access, action):
            raise Forbidden(f"You are not allowed to {action} this trip")

        transition = TripStateMachine.transition_for(action)
        if not TripStateMachine.can_transition(access.status, transition.target):
            raise InvalidTransition(access.status.value, transition.target.value)

        # The status read above is advisory; the conditional update is the guard.
        trip = await self.repository.update_trip_status(
            trip_id, transition.target, transition.timestamp_field, expected_status=transition.source
        )
        if trip is None:
            current = await self.repository.find_trip_access(trip_id)
            if current is None:
                raise NotFound(TRIP_NOT_FOUND)
            await log_warning(
                f"Trip {trip_id}: concurrent {action} lost the race (status {current.status})"
            )
            raise InvalidTransition(current.status.value, transition.target.value)

        await log_info(
            f"Trip {trip_id}: {transition.source} -> {transition.target} by user {user.id}",
            type_msg=TypeMsg.INFO,
        )
        await self.broadcaster.emit(
            trip_room(trip_id),
            TRANSITION_EVENTS[action],
            {"tripId": trip_id, "status": trip.status.value},
        )
        await self.event_bus.publish(self._transition_event(action, trip, user))
        return trip

    @staticmethod
    def _transition_event(action: TripAction, trip: TripDTO, user: AuthUser):
        if action == TripAction.START:
            return TripStarted(trip_id=trip.id, driver_user_id=user.id, started_at=trip.started_at)
        if action == TripAction.END:
            return TripCompleted(trip_id=trip.id, driver_user_id=user.id, completed_at=trip.stopped_at)
        return TripCancelled(trip_id=trip.id, cancelled_by=user.id, cancelled_at=trip.stopped_at)

    @staticmethod
    def transition_message(action: TripAction) -> str:
        return TRANSITION_MESSAGES[action]

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------

    async def mark_attendance(
        self,
        user: AuthUser,
        trip_id: int,
        request: MarkAttendanceRequest,
    ) -> AttendanceDTO:
        access = await self._load_visible(user, trip_id)
        if not can_act_on_trip(user, access, TripAction.MARK_ATTENDANCE):
            raise Forbidden("Only the assigned driver can mark attendance")

        if request.student_id not in {p.student_id for p in access.passengers}:
            raise InvalidArgument("Student is not on this trip's attendance list")

        attendance = await self.repository.upsert_attendance(
            trip_id, request.student_id, request.status.value, user.id
        )

        await self.broadcaster.emit(trip_room(trip_id), ServerEvent.ATTENDANCE_UPDATED, attendance.to_payload())
        await self.event_bus.publish(AttendanceMarked(
            trip_id=trip_id,
            student_id=request.student_id,
            status=request.status.value,
            marked_by=user.id,
        ))
        return attendance

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def submit_feedback(
        self,
        user: AuthUser,
        trip_id: int,
        request: SubmitFeedbackRequest,
    ) -> FeedbackDTO:
        access = await self._load_visible(user, trip_id)
        if not can_submit_feedback(user, access, request.student_id):
            raise Forbidden("You can only leave feedback for trips your children were on")

        parent_id = await self.repository.find_parent_id(user.id)
        if parent_id is None:
            raise Forbidden("Parent profile not found")

        already_submitted = await self.repository.feedback_exists(trip_id, parent_id, request.student_id)
        if not can_submit_feedback(user, access, request.student_id, already_submitted=already_submitted):
            raise Conflict("Feedback already submitted for this trip")

        feedback = await self.repository.insert_feedback(
            trip_id, parent_id, request.student_id, request.rating, request.comment
        )
        if feedback is None:
            raise Conflict("Feedback already submitted for this trip")

        await self.event_bus.publish(FeedbackSubmitted(
            trip_id=trip_id,
            parent_id=parent_id,
            student_id=request.student_id,
            rating=request.rating,
        ))
        return feedback

    async def list_feedback(self, user: AuthUser, trip_id: int) -> List[FeedbackDTO]:
        access = await self._load_visible(user, trip_id)
        if can_view_all_feedback(user, access):
            return await self.repository.list_feedback(trip_id)

        parent_id = await self.repository.find_parent_id(user.id)
        if parent_id is None:
            return []
        return await self.repository.list_feedback(trip_id, parent_id=parent_id)

    # ------------------------------------------------------------------
    # Report
    # ------------------------------------------------------------------

    async def get_report(self, user: AuthUser, trip_id: int) -> TripReportDTO:
        """Report data for an external PDF generator."""
        if user.role not in (UserRole.ADMIN, UserRole.PARENT):
            raise Forbidden("Only administrators and parents can download trip reports")

        trip = await self.get_trip(user, trip_id)
        locations = await self.repository.get_location_stats(trip_id)
        feedback = await self.list_feedback(user, trip_id)
        return TripReportDTO(
            trip=trip,
            locations=locations,
            feedback=feedback,
            generated_at=datetime.now(timezone.utc),
        )
