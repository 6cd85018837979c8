#!/usr/bin/env python3
# entrypoint_api.py
"""
Точка входа контейнера School Bus API.
Ждёт PostgreSQL, применяет схему и запускает uvicorn.
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import asyncpg
import uvicorn

from src.config import settings
from src.common.logger import setup_logging, log_info, log_warning
from src.common.constants import TypeMsg
from src.infra.database import init_db, close_db

WAIT_ATTEMPTS = 30
WAIT_DELAY = 2.0


async def wait_for_postgres() -> None:
    """Ожидает доступности PostgreSQL и применяет схему."""
    for attempt in range(1, WAIT_ATTEMPTS + 1):
        try:
            await init_db(apply_schema=True)
            await close_db()
            return
        except (OSError, asyncpg.PostgresError) as e:
            await log_warning(f"PostgreSQL недоступен (попытка {attempt}/{WAIT_ATTEMPTS}): {e}")
            await asyncio.sleep(WAIT_DELAY)
    raise RuntimeError("PostgreSQL так и не стал доступен")


def main() -> None:
    """Запуск School Bus API."""
    setup_logging()
    asyncio.run(wait_for_postgres())
    asyncio.run(log_info(
        f"Запуск School Bus API на {settings.deployment.API_HOST}:{settings.deployment.API_PORT}",
        type_msg=TypeMsg.INFO,
    ))

    uvicorn.run(
        "src.services.api.app:app",
        host=settings.deployment.API_HOST,
        port=settings.deployment.API_PORT,
        workers=settings.deployment.API_WORKERS,
        log_level="debug" if settings.system.DEBUG else "info",
    )


if __name__ == "__main__":
    main()
