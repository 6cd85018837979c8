import asyncpg

from src.common.logger import log_info, TypeMsg
from src.services.auth_service.repository import UserRepository
from src.services.auth_service.security import create_access_token, hash_password, verify_password
from src.shared.errors import Conflict, NotFound, Unauthenticated
from src.shared.models.user_dto import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    RegisterResponse,
    UserDTO,
)


def split_name(name: str) -> tuple[str, str]:
    """'Jane Mary Doe' -> ('Jane', 'Mary Doe')."""
    first, _, last = name.strip().partition(" ")
    return first, last.strip()


class AuthService:
    def __init__(self, repository: UserRepository):
        self.repository = repository

    async def register(self, request: RegisterRequest) -> RegisterResponse:
        """Регистрирует пользователя и создаёт профиль его роли."""
        if await self.repository.email_exists(request.email):
            raise Conflict("User with this email already exists")

        first_name, last_name = split_name(request.name)
        try:
            user = await self.repository.create_user_with_profile(
                email=request.email,
                password_hash=hash_password(request.password),
                name=request.name.strip(),
                phone=request.phone,
                role=request.role,
                first_name=first_name,
                last_name=last_name,
            )
        except asyncpg.UniqueViolationError:
            # Параллельная регистрация с тем же email
            raise Conflict("User with this email already exists")

        await log_info(f"Зарегистрирован пользователь {user.id} ({user.role})", type_msg=TypeMsg.INFO)
        return RegisterResponse(message="User registered successfully", user_id=user.id, role=user.role)

    async def login(self, request: LoginRequest) -> LoginResponse:
        credentials = await self.repository.get_credentials(request.email)
        if credentials is None or not verify_password(request.password, credentials.password_hash):
            raise Unauthenticated("Invalid credentials")

        token = create_access_token(credentials.id, credentials.role)
        return LoginResponse(
            message="Login successful",
            token=token,
            user_id=credentials.id,
            role=credentials.role,
        )

    async def get_profile(self, user_id: int) -> UserDTO:
        user = await self.repository.get_user_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user
