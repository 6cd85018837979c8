# src/services/auth_service/security.py
"""
Хеширование паролей (passlib/bcrypt) и JWT-токены (python-jose, HS256).
Токен содержит sub (id пользователя) и role; срок жизни — ACCESS_TOKEN_EXPIRE_DAYS.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from passlib.context import CryptContext

from src.config import settings
from src.shared.errors import Unauthenticated
from src.shared.models.enums import UserRole
from src.shared.models.user_dto import AuthUser

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Хеш в базе не bcrypt (повреждён или импортирован)
        return False


def _secret() -> str:
    secret = settings.auth.JWT_SECRET
    if not secret:
        raise RuntimeError("JWT_SECRET не задан")
    return secret


def create_access_token(user_id: int, role: UserRole, expires_delta: timedelta | None = None) -> str:
    """Выпускает токен {sub, role, iat, exp}."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.auth.ACCESS_TOKEN_EXPIRE_DAYS))
    payload = {
        "sub": str(user_id),
        "role": str(role),
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, _secret(), algorithm=settings.auth.JWT_ALGORITHM)


def decode_access_token(token: str | None) -> AuthUser:
    """
    Проверяет подпись и срок действия токена.

    Raises:
        Unauthenticated: токен отсутствует, просрочен или некорректен
    """
    if not token:
        raise Unauthenticated("Authentication required")

    try:
        payload = jwt.decode(token, _secret(), algorithms=[settings.auth.JWT_ALGORITHM])
    except JWTError:
        raise Unauthenticated("Invalid or expired token")

    try:
        return AuthUser(id=int(payload["sub"]), role=UserRole(payload["role"]))
    except (KeyError, TypeError, ValueError):
        raise Unauthenticated("Invalid token payload")


def extract_bearer(authorization: str | None) -> str | None:
    """Токен из заголовка "Authorization: Bearer <token>"."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
