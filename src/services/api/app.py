# src/services/api/app.py
"""
FastAPI приложение School Bus API.

REST-роутеры подключаются под префиксом /api, realtime-шлюз — на /ws.
Ошибки домена и валидации отдаются единым телом {"error": message}.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.common.logger import log_error, log_info, setup_logging
from src.common.constants import TypeMsg
from src.config import settings
from src.infra.database import close_db, get_db, init_db
from src.infra.event_bus import close_event_bus, get_event_bus, init_event_bus
from src.infra.redis_client import close_redis, get_redis, init_redis
from src.services.admin_service.routes import router as admin_router
from src.services.auth_service.routes import router as auth_router, users_router
from src.services.location_service.routes import router as locations_router
from src.services.messaging_service.routes import router as messages_router
from src.services.realtime_ws.dependencies import close_realtime, get_connection_manager, init_realtime
from src.services.realtime_ws.routes import router as realtime_router
from src.services.students_service.routes import router as students_router
from src.services.trip_service.routes import router as trips_router
from src.shared.errors import SchoolBusError
from src.shared.models.common import ErrorResponse, HealthStatus

API_PREFIX = "/api"
SERVICE_NAME = "school_bus_api"


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Жизненный цикл приложения."""
    setup_logging()
    await log_info("School Bus API запускается...", type_msg=TypeMsg.INFO)

    await init_db()

    redis_required = settings.realtime.REALTIME_BACKPLANE == "redis"
    try:
        await init_redis()
    except Exception as e:
        if redis_required:
            raise
        # Без Redis работает всё, кроме кэша последней точки
        await log_error(f"Redis недоступен, кэш локаций отключён: {e}")
        await close_redis()

    try:
        await init_event_bus()
    except Exception as e:
        await log_error(f"RabbitMQ недоступен, доменные события не публикуются: {e}")

    await init_realtime()

    yield

    await close_realtime()
    await close_event_bus()
    await close_redis()
    await close_db()
    await log_info("School Bus API остановлен", type_msg=TypeMsg.INFO)


# =============================================================================
# ОБРАБОТЧИКИ ОШИБОК
# =============================================================================

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


async def domain_error_handler(request: Request, exc: SchoolBusError) -> JSONResponse:
    if exc.status_code >= 500:
        await log_error(f"{request.method} {request.url.path}: {exc.message}")
    return _error(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Ошибки валидации тела/параметров -> 400 с первым сообщением."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _error(status.HTTP_400_BAD_REQUEST, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    await log_error(f"Необработанная ошибка {request.method} {request.url.path}: {exc}", exc_info=True)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# =============================================================================
# ПРИЛОЖЕНИЕ
# =============================================================================

def create_app() -> FastAPI:
    app = FastAPI(
        title="School Bus API",
        description="Рейсы школьных автобусов: расписание, live-трекинг, посещаемость, сообщения",
        version=settings.system.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.system.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SchoolBusError, domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    for router in (
        auth_router,
        users_router,
        trips_router,
        locations_router,
        messages_router,
        students_router,
        admin_router,
    ):
        app.include_router(router, prefix=API_PREFIX)
    app.include_router(realtime_router)

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        """Проверка здоровья сервиса."""
        deps = {"postgres": "healthy" if await get_db().health_check() else "unhealthy"}
        redis = get_redis()
        deps["redis"] = "healthy" if redis.is_connected and await redis.health_check() else "unavailable"
        deps["rabbitmq"] = "healthy" if await get_event_bus().health_check() else "unavailable"
        deps["realtime_connections"] = str(get_connection_manager().active_connections)

        return HealthStatus(
            service=SERVICE_NAME,
            status="healthy" if deps["postgres"] == "healthy" else "degraded",
            version=settings.system.VERSION,
            dependencies=deps,
        )

    return app


app = create_app()
