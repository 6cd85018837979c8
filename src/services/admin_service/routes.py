from typing import List

from fastapi import APIRouter, Depends

from src.infra.database import DatabaseManager
from src.services.admin_service.repository import AdminRepository
from src.services.auth_service.dependencies import require_roles
from src.shared.models.admin_dto import BusDTO, DriverDTO, RouteDTO
from src.shared.models.enums import UserRole


def get_admin_repository() -> AdminRepository:
    return AdminRepository(DatabaseManager())


router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)


@router.get("/buses", response_model=List[BusDTO])
async def list_buses(repository: AdminRepository = Depends(get_admin_repository)):
    return await repository.list_buses()


@router.get("/routes", response_model=List[RouteDTO])
async def list_routes(repository: AdminRepository = Depends(get_admin_repository)):
    return await repository.list_routes()


@router.get("/drivers", response_model=List[DriverDTO])
async def list_drivers(repository: AdminRepository = Depends(get_admin_repository)):
    return await repository.list_drivers()
