from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from src.shared.models.common import ApiModel
from src.shared.models.enums import UserRole


class AuthUser(BaseModel):
    """Аутентифицированный субъект: то, что извлекается из токена."""
    model_config = ConfigDict(frozen=True)

    id: int
    role: UserRole


class UserDTO(ApiModel):
    id: int
    email: str
    name: str
    phone: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None


class UserSummary(ApiModel):
    id: int
    name: str
    email: Optional[str] = None
    role: UserRole


class UserCredentials(BaseModel):
    """Строка users для проверки пароля; наружу не отдаётся."""
    id: int
    email: str
    password_hash: str
    role: UserRole


class RegisterRequest(ApiModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    role: UserRole
    phone: Optional[str] = None


class RegisterResponse(ApiModel):
    message: str
    user_id: int
    role: UserRole


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(min_length=1)


class LoginResponse(ApiModel):
    message: str
    token: str
    user_id: int
    role: UserRole
