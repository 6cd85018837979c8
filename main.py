#!/usr/bin/env python3
# main.py
"""
Главная точка входа School Bus API.

Режимы:
    api           — REST API и realtime-шлюз (по умолчанию)
    create_db     — создать базу DB_NAME, если её нет
    init_db       — применить migrations/init.sql и выйти
    create_admin  — создать администратора из ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_NAME
"""

from __future__ import annotations

import asyncio
import os
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg
from src.infra.database import close_db, create_database, init_db

MODES = ("api", "create_db", "init_db", "create_admin")


def run_api() -> None:
    """Запускает uvicorn; инфраструктура поднимается в lifespan приложения."""
    import uvicorn

    uvicorn.run(
        "src.services.api.app:app",
        host=settings.deployment.API_HOST,
        port=settings.deployment.API_PORT,
        workers=settings.deployment.API_WORKERS,
        reload=settings.system.DEBUG and settings.deployment.API_WORKERS == 1,
        log_level="debug" if settings.system.DEBUG else "info",
    )


async def run_init_db() -> None:
    """Применяет схему БД."""
    await init_db(apply_schema=True)
    await close_db()


async def run_create_admin() -> None:
    """Создаёт администратора, если email ещё не занят."""
    from src.services.auth_service.dependencies import get_auth_service
    from src.shared.errors import Conflict
    from src.shared.models.enums import UserRole
    from src.shared.models.user_dto import RegisterRequest

    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        await log_error("Задайте ADMIN_EMAIL и ADMIN_PASSWORD")
        sys.exit(1)

    await init_db(apply_schema=False)
    try:
        response = await get_auth_service().register(RegisterRequest(
            email=email,
            password=password,
            name=os.getenv("ADMIN_NAME", "School Admin"),
            role=UserRole.ADMIN,
        ))
        await log_info(f"Администратор создан: user_id={response.user_id}", type_msg=TypeMsg.INFO)
    except Conflict:
        await log_info(f"Администратор {email} уже существует", type_msg=TypeMsg.INFO)
    finally:
        await close_db()


def print_usage() -> None:
    print(__doc__)
    print("Использование:\n    python main.py [api|create_db|init_db|create_admin]")


if __name__ == "__main__":
    mode = sys.argv[1].lower() if len(sys.argv) > 1 else "api"

    if mode in ("--help", "-h"):
        print_usage()
        sys.exit(0)
    if mode not in MODES:
        print(f"Ошибка: неизвестный режим '{mode}'")
        print_usage()
        sys.exit(1)

    setup_logging()

    if mode == "api":
        run_api()
    elif mode == "create_db":
        asyncio.run(create_database())
    elif mode == "init_db":
        asyncio.run(run_init_db())
    else:
        asyncio.run(run_create_admin())
