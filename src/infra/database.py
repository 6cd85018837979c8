# src/infra/database.py
"""
Менеджер базы данных PostgreSQL.
Пул соединений asyncpg, повтор при обрывах соединения, транзакции
и применение схемы из migrations/init.sql.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import wraps
from typing import Any, AsyncGenerator, Callable, TypeVar

import asyncpg
from asyncpg import Connection, Pool, Record

from src.common.logger import log_error, log_info, log_warning
from src.common.constants import TypeMsg

T = TypeVar("T")

# Произвольный ключ advisory lock для миграций
SCHEMA_LOCK_KEY = 770_001


@dataclass(frozen=True)
class RetryPolicy:
    """Повторы запроса при обрыве соединения; задержка растёт линейно."""
    attempts: int = 3
    delay: float = 1.0


CONNECTION_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    ConnectionRefusedError,
    OSError,
)


def retry_on_connection_error(
    max_attempts: int | None = None,
    delay: float | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Декоратор повторных попыток при ошибках подключения.

    Без аргументов политика берётся у экземпляра (self.retry_policy),
    что позволяет задать её из настроек при connect().
    Ошибки уровня SQL (нарушение уникальности и т.п.) не повторяются.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            policy = getattr(args[0], "retry_policy", None) if args else None
            policy = policy if isinstance(policy, RetryPolicy) else RetryPolicy()
            attempts = max_attempts if max_attempts is not None else policy.attempts
            base_delay = delay if delay is not None else policy.delay

            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except CONNECTION_ERRORS as e:
                    if attempt == attempts:
                        await log_error(f"{func.__name__}: БД недоступна после {attempts} попыток: {e}")
                        raise
                    await log_warning(f"{func.__name__}: ошибка подключения к БД ({attempt}/{attempts}): {e}")
                    await asyncio.sleep(base_delay * attempt)

        return wrapper  # type: ignore

    return decorator


class DatabaseManager:
    """
    Менеджер подключений к PostgreSQL (Singleton).
    Репозитории получают его через конструктор и не знают о пуле.
    """

    _instance: DatabaseManager | None = None
    _pool: Pool | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._pool = None
        self.retry_policy = RetryPolicy()

    @property
    def pool(self) -> Pool:
        """Возвращает пул соединений."""
        if self._pool is None:
            raise RuntimeError("Пул соединений не инициализирован. Вызовите connect() сначала.")
        return self._pool

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @retry_on_connection_error(max_attempts=3, delay=1.0)
    async def connect(
        self,
        dsn: str,
        min_size: int = 5,
        max_size: int = 20,
        command_timeout: int = 60,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """
        Создаёт пул соединений к PostgreSQL.

        Args:
            dsn: DSN строка подключения
            min_size: Минимальный размер пула
            max_size: Максимальный размер пула
            command_timeout: Таймаут команд (секунды)
            retry_policy: Повторы запросов при обрывах соединения
        """
        if self._pool is not None:
            return

        if retry_policy is not None:
            self.retry_policy = retry_policy
        self._pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
        )

    async def disconnect(self) -> None:
        """Закрывает пул соединений."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def acquire(self) -> AsyncGenerator[Connection, None]:
        """
        Соединение из пула.

        Example:
            async with db.acquire() as conn:
                rows = await conn.fetch("SELECT * FROM trips")
        """
        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self, isolation: str = "read_committed") -> AsyncGenerator[Connection, None]:
        """
        Транзакция: commit при успехе, rollback при исключении.

        Example:
            async with db.transaction() as conn:
                await conn.execute("SELECT pg_advisory_xact_lock($1)", trip_id)
                await conn.execute("INSERT INTO trip_locations ...")
        """
        async with self.pool.acquire() as connection:
            async with connection.transaction(isolation=isolation):
                yield connection

    @retry_on_connection_error()
    async def execute(self, query: str, *args: Any) -> str:
        """Выполняет SQL запрос без возврата данных, возвращает статус."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    @retry_on_connection_error()
    async def fetch(self, query: str, *args: Any) -> list[Record]:
        """Выполняет SQL запрос и возвращает все строки."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    @retry_on_connection_error()
    async def fetchrow(self, query: str, *args: Any) -> Record | None:
        """Выполняет SQL запрос и возвращает одну строку или None."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    @retry_on_connection_error()
    async def fetchval(self, query: str, *args: Any, column: int = 0) -> Any:
        """Выполняет SQL запрос и возвращает одно значение."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args, column=column)

    async def health_check(self) -> bool:
        """True, если БД отвечает на SELECT 1."""
        try:
            result = await self.fetchval("SELECT 1")
            return result == 1
        except Exception as e:
            await log_error(f"Health check PostgreSQL failed: {e}")
            return False


# =============================================================================
# ЖИЗНЕННЫЙ ЦИКЛ
# =============================================================================

_db_manager: DatabaseManager | None = None


def get_db() -> DatabaseManager:
    """Возвращает глобальный экземпляр DatabaseManager."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


async def init_db(apply_schema: bool = True) -> None:
    """
    Подключается к БД по настройкам и (опционально) применяет схему.
    """
    from src.config import settings

    db = get_db()
    await log_info("Подключение к PostgreSQL...", type_msg=TypeMsg.INFO)
    await db.connect(
        dsn=settings.database.dsn,
        min_size=settings.database.DB_MIN_POOL_SIZE,
        max_size=settings.database.DB_MAX_POOL_SIZE,
        command_timeout=settings.database.DB_COMMAND_TIMEOUT,
        retry_policy=RetryPolicy(
            attempts=settings.database.DB_RETRY_ATTEMPTS,
            delay=settings.database.DB_RETRY_DELAY,
        ),
    )
    await log_info(
        f"PostgreSQL подключён: {settings.database.DB_HOST}:{settings.database.DB_PORT}/{settings.database.DB_NAME}",
        type_msg=TypeMsg.INFO,
    )

    if apply_schema:
        await apply_schema_file(db)


async def apply_schema_file(db: DatabaseManager) -> None:
    """
    Применяет migrations/init.sql.
    Скрипт идемпотентен (IF NOT EXISTS); параллельный старт нескольких
    процессов сериализуется advisory lock'ом внутри транзакции.
    """
    from src.config.loader import get_project_root

    schema_path = get_project_root() / "migrations" / "init.sql"
    if not schema_path.exists():
        await log_error(f"Файл схемы БД не найден: {schema_path}")
        return

    schema_sql = schema_path.read_text(encoding="utf-8")

    await log_info("Применение схемы БД...", type_msg=TypeMsg.INFO)
    async with db.transaction() as conn:
        await conn.execute("SELECT pg_advisory_xact_lock($1)", SCHEMA_LOCK_KEY)
        await conn.execute(schema_sql)
    await log_info("Схема БД успешно применена", type_msg=TypeMsg.INFO)


async def close_db() -> None:
    """Закрывает подключение к базе данных."""
    await get_db().disconnect()
    await log_info("PostgreSQL отключён", type_msg=TypeMsg.INFO)


async def create_database() -> bool:
    """
    Создаёт базу DB_NAME, если её ещё нет (подключение к служебной базе postgres).

    Returns:
        True, если база была создана
    """
    from src.config import settings

    db_name = settings.database.DB_NAME
    sys_conn = await asyncpg.connect(
        user=settings.database.DB_USER,
        password=settings.database.DB_PASSWORD,
        host=settings.database.DB_HOST,
        port=settings.database.DB_PORT,
        database="postgres",
    )
    try:
        if await sys_conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", db_name):
            await log_info(f"База {db_name} уже существует", type_msg=TypeMsg.INFO)
            return False
        # CREATE DATABASE не принимает параметры
        await sys_conn.execute(f'CREATE DATABASE "{db_name}"')
        await log_info(f"База {db_name} создана", type_msg=TypeMsg.INFO)
        return True
    finally:
        await sys_conn.close()
