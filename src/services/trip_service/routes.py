from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from src.services.auth_service.dependencies import get_current_user, require_roles
from src.services.trip_service.dependencies import get_trip_service
from src.services.trip_service.service import TripService
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
    TripTransitionResponse,
)
from src.shared.models.user_dto import AuthUser

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.get("", response_model=List[TripDTO], response_model_exclude_none=True)
async def list_trips(
    trip_date: Optional[date] = Query(default=None, alias="date"),
    summary: bool = False,
    user: AuthUser = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    return await service.list_trips(user, trip_date, summary)


@router.post("", response_model=TripDTO, status_code=status.HTTP_201_CREATED)
async def create_trip(
    request: CreateTripRequest,
    user: AuthUser = Depends(require_roles(UserRole.ADMIN)),
    service: TripService = Depends(get_trip_service),
):
    return await service.create_trip(user, request)


@router.get("/{trip_id}", response_model=TripDetailDTO)
async def get_trip(
    trip_id: int,
    user: AuthUser = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    return await service.get_trip(user, trip_id)


@router.put("/{trip_id}/start", response_model=TripTransitionResponse)
async def start_trip(
    trip_id: int,
    user: AuthUser = Depends(require_roles(UserRole.DRIVER)),
    service: TripService = Depends(get_trip_service),
):
    trip = await service.start_trip(user, trip_id)
    return TripTransitionResponse(message=service.transition_message(TripAction.START), trip=trip)


@router.put("/{trip_id}/end", response_model=TripTransitionResponse)
async def end_trip(
    trip_id: int,
    user: AuthUser = Depends(require_roles(UserRole.DRIVER)),
    service: TripService = Depends(get_trip_service),
):
    trip = await service.end_trip(user, trip_id)
    return TripTransitionResponse(message=service.transition_message(TripAction.END), trip=trip)


@router.put("/{trip_id}/cancel", response_model=TripTransitionResponse)
async def cancel_trip(
    trip_id: int,
    user: AuthUser = Depends(require_roles(UserRole.ADMIN)),
    service: TripService = Depends(get_trip_service),
):
    trip = await service.cancel_trip(user, trip_id)
    return TripTransitionResponse(message=service.transition_message(TripAction.CANCEL), trip=trip)


@router.post("/{trip_id}/attendance", response_model=AttendanceDTO, status_code=status.HTTP_201_CREATED)
async def mark_attendance(
    trip_id: int,
    request: MarkAttendanceRequest,
    user: AuthUser = Depends(require_roles(UserRole.DRIVER)),
    service: TripService = Depends(get_trip_service),
):
    return await service.mark_attendance(user, trip_id, request)


@router.get("/{trip_id}/report", response_model=TripReportDTO)
async def get_trip_report(
    trip_id: int,
    user: AuthUser = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    return await service.get_report(user, trip_id)


@router.post("/{trip_id}/feedback", response_model=FeedbackDTO, status_code=status.HTTP_201_CREATED)
async def submit_feedback(
    trip_id: int,
    request: SubmitFeedbackRequest,
    user: AuthUser = Depends(require_roles(UserRole.PARENT)),
    service: TripService = Depends(get_trip_service),
):
    return await service.submit_feedback(user, trip_id, request)


@router.get("/{trip_id}/feedback", response_model=List[FeedbackDTO])
async def list_feedback(
    trip_id: int,
    user: AuthUser = Depends(get_current_user),
    service: TripService = Depends(get_trip_service),
):
    return await service.list_feedback(user, trip_id)
