from typing import Optional

from src.infra.database import DatabaseManager
from src.shared.models.enums import UserRole
from src.shared.models.user_dto import UserCredentials, UserDTO

PROFILE_TABLES = {
    UserRole.ADMIN: "administrators",
    UserRole.DRIVER: "drivers",
    UserRole.PARENT: "parents",
}


class UserRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    async def get_user_by_id(self, user_id: int) -> Optional[UserDTO]:
        """Получает пользователя по ID."""
        query = """
            SELECT id, email, name, phone, role, created_at
            FROM users
            WHERE id = $1
        """
        record = await self.db.fetchrow(query, user_id)
        return UserDTO(**dict(record)) if record else None

    async def get_credentials(self, email: str) -> Optional[UserCredentials]:
        """Email сравнивается без учёта регистра."""
        query = "SELECT id, email, password_hash, role FROM users WHERE lower(email) = lower($1)"
        record = await self.db.fetchrow(query, email)
        return UserCredentials(**dict(record)) if record else None

    async def email_exists(self, email: str) -> bool:
        return bool(await self.db.fetchval(
            "SELECT EXISTS (SELECT 1 FROM users WHERE lower(email) = lower($1))", email
        ))

    async def create_user_with_profile(
        self,
        email: str,
        password_hash: str,
        name: str,
        phone: Optional[str],
        role: UserRole,
        first_name: str,
        last_name: str,
    ) -> UserDTO:
        """
        Создаёт пользователя и профиль роли (administrators/drivers/parents)
        в одной транзакции.
        """
        profile_table = PROFILE_TABLES[role]
        async with self.db.transaction() as conn:
            record = await conn.fetchrow(
                """
                INSERT INTO users (email, password_hash, name, phone, role)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING id, email, name, phone, role, created_at
                """,
                email, password_hash, name, phone, role.value,
            )
            await conn.execute(
                f"INSERT INTO {profile_table} (user_id, first_name, last_name) VALUES ($1, $2, $3)",
                record["id"], first_name, last_name,
            )
        return UserDTO(**dict(record))
