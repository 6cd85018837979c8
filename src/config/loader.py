# src/config/loader.py
"""
Загрузчик конфигурации сервиса координации школьных автобусов.

config/config.json — плоский словарь; каждая секция забирает из него
свои поля. Переменные окружения перекрывают файл для ключей из
ENV_OVERRIDES секции, пустые секреты из SECRETS добираются из окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Читает config.json; ключи _comment_* отбрасываются."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# СЕКЦИИ КОНФИГУРАЦИИ
# =============================================================================

class ConfigSection(BaseModel):
    """Секция настроек, собираемая из плоского config.json."""

    ENV_OVERRIDES: ClassVar[tuple[str, ...]] = ()
    SECRETS: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def fill_secrets_from_env(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        for key in cls.SECRETS:
            if not data.get(key):
                env_value = os.getenv(key)
                if env_value:
                    data = {**data, key: env_value}
        return data

    @classmethod
    def from_flat(cls, config: dict[str, Any]) -> "ConfigSection":
        values = {name: config[name] for name in cls.model_fields if name in config}
        for name in cls.ENV_OVERRIDES + cls.SECRETS:
            if name in os.environ:
                values[name] = os.environ[name]
        return cls(**values)


class SystemSettings(ConfigSection):
    PROJECT_NAME: str = "school_bus"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: list[str] = Field(default_factory=lambda: ["*"])

    ENV_OVERRIDES: ClassVar[tuple[str, ...]] = ("ENVIRONMENT",)


class DeploymentSettings(ConfigSection):
    """HTTP/WebSocket API."""
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_WORKERS: int = 1

    ENV_OVERRIDES: ClassVar[tuple[str, ...]] = ("API_HOST", "API_PORT", "API_WORKERS")


class LoggingSettings(ConfigSection):
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = False
    LOG_FILE_PATH: str = "logs/school_bus.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10 * 1024 * 1024

    ENV_OVERRIDES: ClassVar[tuple[str, ...]] = ("LOG_LEVEL", "LOG_FORMAT")

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("colored", "json"):
            raise ValueError(f"Неизвестный формат логов: {v}")
        return v


class AuthSettings(ConfigSection):
    """JWT (HS256) и срок жизни токена."""
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7

    SECRETS: ClassVar[tuple[str, ...]] = ("JWT_SECRET",)


class DatabaseSettings(ConfigSection):
    """PostgreSQL: пул asyncpg и повторы при временных сбоях."""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "school_bus"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_DELAY: float = 1.0

    ENV_OVERRIDES: ClassVar[tuple[str, ...]] = ("DB_HOST", "DB_PORT", "DB_NAME", "DB_USER")
    SECRETS: ClassVar[tuple[str, ...]] = ("DB_PASSWORD",)

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"


class RedisSettings(ConfigSection):
    """Redis: кэш последней точки рейса и бэкплейн комнат."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "school_bus"
    REDIS_MAX_CONNECTIONS: int = 50

    ENV_OVERRIDES: ClassVar[tuple[str, ...]] = ("REDIS_HOST", "REDIS_PORT")
    SECRETS: ClassVar[tuple[str, ...]] = ("REDIS_PASSWORD",)

    @property
    def url(self) -> str:
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RabbitMQSettings(ConfigSection):
    """RabbitMQ: topic exchange доменных событий."""
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "school_bus.events"
    RABBITMQ_PREFETCH_COUNT: int = 10

    ENV_OVERRIDES: ClassVar[tuple[str, ...]] = ("RABBITMQ_HOST", "RABBITMQ_PORT", "RABBITMQ_USER")
    SECRETS: ClassVar[tuple[str, ...]] = ("RABBITMQ_PASSWORD",)

    @property
    def url(self) -> str:
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class RealtimeSettings(ConfigSection):
    """Realtime-шлюз: local держит комнаты в памяти процесса, redis делит их между процессами."""
    REALTIME_BACKPLANE: str = "local"
    REALTIME_CHANNEL_PREFIX: str = "rooms:"
    LATEST_LOCATION_TTL: int = 300

    ENV_OVERRIDES: ClassVar[tuple[str, ...]] = ("REALTIME_BACKPLANE",)

    @field_validator("REALTIME_BACKPLANE")
    @classmethod
    def validate_backplane(cls, v: str) -> str:
        if v not in ("local", "redis"):
            raise ValueError(f"Неизвестный бэкплейн: {v}")
        return v


class TripSettings(ConfigSection):
    LOCATION_HISTORY_LIMIT: int = 100
    MESSAGING_RECENT_TRIP_DAYS: int = 7


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """Все секции конфигурации приложения."""
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    realtime: RealtimeSettings = Field(default_factory=RealtimeSettings)
    trips: TripSettings = Field(default_factory=TripSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls) -> "Settings":
        config = {k: v for k, v in load_config_json().items() if not k.startswith("_comment_")}
        sections = {
            name: field.annotation.from_flat(config)
            for name, field in cls.model_fields.items()
        }
        return cls(**sections)


@lru_cache()
def get_settings() -> Settings:
    """Синглтон настроек; .env из корня проекта подгружается до чтения окружения."""
    from dotenv import load_dotenv

    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


settings = get_settings()
