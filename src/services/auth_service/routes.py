from fastapi import APIRouter, Depends, status

from src.services.auth_service.dependencies import get_auth_service, get_current_user
from src.services.auth_service.service import AuthService
from src.shared.models.user_dto import (
    AuthUser,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserDTO,
)

router = APIRouter(prefix="/auth", tags=["Auth"])
users_router = APIRouter(prefix="/users", tags=["Users"])


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
):
    return await service.register(request)


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    return await service.login(request)


@users_router.get("/me", response_model=UserDTO)
async def get_me(
    user: AuthUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    return await service.get_profile(user.id)
