# tests/config/test_loader.py
"""
Тесты для модуля загрузки конфигурации.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from src.config.loader import (
    AuthSettings,
    DatabaseSettings,
    RabbitMQSettings,
    RealtimeSettings,
    RedisSettings,
    Settings,
    TripSettings,
    get_config_path,
    get_project_root,
    load_config_json,
)


class TestPaths:
    """Тесты для путей проекта."""

    def test_root_contains_src_and_config(self) -> None:
        root = get_project_root()
        assert (root / "src").exists()
        assert (root / "config").exists()
        assert (root / "migrations" / "init.sql").exists()

    def test_config_path(self) -> None:
        path = get_config_path()
        assert path.name == "config.json"
        assert path.parent.name == "config"


class TestLoadConfigJson:
    """Тесты для функции load_config_json."""

    def test_repository_config(self) -> None:
        config = load_config_json()

        assert config["PROJECT_NAME"] == "school_bus"
        assert config["REALTIME_BACKPLANE"] in ("local", "redis")
        assert "LOCATION_HISTORY_LIMIT" in config

    def test_missing_file(self, tmp_path: Path) -> None:
        with patch("src.config.loader.get_config_path", return_value=tmp_path / "missing.json"):
            with pytest.raises(FileNotFoundError, match="Файл конфигурации не найден"):
                load_config_json()


class TestSections:
    """Тесты для секций настроек."""

    def test_database_dsn(self) -> None:
        db = DatabaseSettings(DB_HOST="db", DB_PORT=5433, DB_NAME="bus", DB_USER="u", DB_PASSWORD="p")
        assert db.dsn == "postgresql://u:p@db:5433/bus"

    def test_database_password_from_env(self) -> None:
        with patch.dict(os.environ, {"DB_PASSWORD": "from-env"}):
            assert DatabaseSettings(DB_PASSWORD="").DB_PASSWORD == "from-env"

    def test_redis_url(self) -> None:
        assert RedisSettings(REDIS_PASSWORD="").url == "redis://localhost:6379/0"
        with patch.dict(os.environ, {"REDIS_PASSWORD": ""}):
            assert RedisSettings(REDIS_PASSWORD="secret", REDIS_HOST="r").url == "redis://:secret@r:6379/0"

    def test_rabbitmq_url(self) -> None:
        with patch.dict(os.environ, {"RABBITMQ_PASSWORD": ""}):
            settings = RabbitMQSettings(RABBITMQ_USER="bus", RABBITMQ_PASSWORD="pw")
        assert settings.url == "amqp://bus:pw@localhost:5672/"

    def test_jwt_secret_from_env(self) -> None:
        with patch.dict(os.environ, {"JWT_SECRET": "env-secret"}):
            assert AuthSettings(JWT_SECRET="").JWT_SECRET == "env-secret"
        assert AuthSettings(JWT_SECRET="explicit").JWT_SECRET == "explicit"

    def test_realtime_backplane_validated(self) -> None:
        assert RealtimeSettings(REALTIME_BACKPLANE="redis").REALTIME_BACKPLANE == "redis"
        with pytest.raises(ValidationError):
            RealtimeSettings(REALTIME_BACKPLANE="kafka")

    def test_trip_defaults(self) -> None:
        trips = TripSettings()
        assert trips.LOCATION_HISTORY_LIMIT == 100
        assert trips.MESSAGING_RECENT_TRIP_DAYS == 7


class TestSettingsFromConfigJson:
    """Тесты для Settings.from_config_json."""

    def _load(self, data: dict[str, Any], env: dict[str, str] | None = None) -> Settings:
        with patch("src.config.loader.load_config_json", return_value=data):
            with patch.dict(os.environ, env or {}):
                return Settings.from_config_json()

    def test_values_from_file(self, mock_config: dict[str, Any]) -> None:
        settings = self._load(mock_config, {"REALTIME_BACKPLANE": "local", "API_PORT": "8001"})

        assert settings.system.PROJECT_NAME == "school_bus_test"
        assert settings.deployment.API_PORT == 8001
        assert settings.redis.REDIS_NAMESPACE == "school_bus_test"
        assert settings.realtime.LATEST_LOCATION_TTL == 120
        assert settings.trips.LOCATION_HISTORY_LIMIT == 50
        assert settings.trips.MESSAGING_RECENT_TRIP_DAYS == 5

    def test_env_overrides_file(self, mock_config: dict[str, Any]) -> None:
        settings = self._load(mock_config, {"DB_HOST": "postgres", "REALTIME_BACKPLANE": "redis"})

        assert settings.database.DB_HOST == "postgres"
        assert settings.realtime.REALTIME_BACKPLANE == "redis"

    def test_comments_ignored(self) -> None:
        settings = self._load({"_comment_x": "ignored", "PROJECT_NAME": "bus"}, {"REALTIME_BACKPLANE": "local"})
        assert settings.system.PROJECT_NAME == "bus"

    def test_defaults_for_empty_file(self) -> None:
        settings = self._load({}, {"REALTIME_BACKPLANE": "local", "DB_HOST": "localhost", "API_PORT": "8000"})

        assert settings.auth.JWT_ALGORITHM == "HS256"
        assert settings.auth.ACCESS_TOKEN_EXPIRE_DAYS == 7
        assert settings.realtime.REALTIME_CHANNEL_PREFIX == "rooms:"

    def test_temp_config_file(self, temp_config_file: Path) -> None:
        data = json.loads(temp_config_file.read_text())
        settings = self._load(data, {"REALTIME_BACKPLANE": "local"})
        assert settings.rabbitmq.RABBITMQ_EXCHANGE == "school_bus.test"
