from typing import Callable, Optional

from fastapi import Depends, Header

from src.infra.database import DatabaseManager
from src.services.auth_service.repository import UserRepository
from src.services.auth_service.security import decode_access_token, extract_bearer
from src.services.auth_service.service import AuthService
from src.shared.errors import Forbidden
from src.shared.models.enums import UserRole
from src.shared.models.user_dto import AuthUser


def get_user_repository() -> UserRepository:
    return UserRepository(DatabaseManager())


def get_auth_service() -> AuthService:
    return AuthService(get_user_repository())


async def get_current_user(authorization: Optional[str] = Header(default=None)) -> AuthUser:
    """Bearer-токен из заголовка Authorization; ошибка -> 401."""
    return decode_access_token(extract_bearer(authorization))


def require_roles(*roles: UserRole) -> Callable:
    """Зависимость: пропускает только перечисленные роли, иначе 403."""
    allowed = frozenset(roles)

    async def checker(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if user.role not in allowed:
            raise Forbidden("Insufficient permissions")
        return user

    return checker
