from typing import List

from fastapi import APIRouter, Depends, status

from src.services.auth_service.dependencies import get_current_user
from src.services.location_service.dependencies import get_location_service
from src.services.location_service.service import LocationService
from src.shared.models.location_dto import (
    LocationBrief,
    LocationSampleDTO,
    SubmitLocationRequest,
    SubmitLocationResponse,
)
from src.shared.models.user_dto import AuthUser

router = APIRouter(prefix="/locations", tags=["Locations"])


@router.post("", response_model=SubmitLocationResponse, status_code=status.HTTP_201_CREATED)
async def submit_location(
    request: SubmitLocationRequest,
    user: AuthUser = Depends(get_current_user),
    service: LocationService = Depends(get_location_service),
):
    """HTTP-вариант realtime-события location-update."""
    sample = await service.submit_location(
        user,
        request.trip_id,
        request.latitude,
        request.longitude,
        request.speed,
        request.heading,
    )
    return SubmitLocationResponse(
        message="Location updated",
        location=LocationBrief(
            id=sample.id,
            latitude=sample.latitude,
            longitude=sample.longitude,
            timestamp=sample.captured_at,
        ),
    )


@router.get("/trip/{trip_id}", response_model=List[LocationSampleDTO])
async def get_trip_locations(
    trip_id: int,
    user: AuthUser = Depends(get_current_user),
    service: LocationService = Depends(get_location_service),
):
    return await service.list_history(user, trip_id)


@router.get("/trip/{trip_id}/latest", response_model=LocationSampleDTO)
async def get_latest_location(
    trip_id: int,
    user: AuthUser = Depends(get_current_user),
    service: LocationService = Depends(get_location_service),
):
    return await service.get_latest(user, trip_id)
