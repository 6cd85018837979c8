# src/shared/models/common.py
"""
Общие модели для всех сервисов.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """
    База для DTO публичного API.
    Наружу поля отдаются в camelCase (tripId, busId), внутри используются
    snake_case имена; строки asyncpg принимаются напрямую через dict(row).
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_payload(self) -> dict:
        """JSON-совместимый словарь в формате API (для realtime-событий)."""
        return self.model_dump(mode="json", by_alias=True)


class ErrorResponse(BaseModel):
    """Единое тело ответа с ошибкой."""

    error: str


class MessageResponse(BaseModel):
    message: str


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""

    service: str
    status: str = "healthy"  # healthy, degraded
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
