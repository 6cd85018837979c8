# src/shared/events/base.py
"""
Базовые классы доменных событий.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TypeVar
from uuid import uuid4

from pydantic import BaseModel, Field, field_serializer


class EventMetadata(BaseModel):
    """Метаданные события для трассировки и дедупликации."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: str | None = None
    source_service: str = "school_bus"
    version: int = 1

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return value.isoformat().replace("+00:00", "Z")


class DomainEvent(BaseModel):
    """
    Базовый класс для всех доменных событий.

    Событие неизменяемо после создания, сериализуется в JSON
    и обрабатывается потребителями идемпотентно по event_id.
    """

    model_config = {"frozen": True}

    event_type: str = ""
    metadata: EventMetadata = Field(default_factory=EventMetadata)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "DomainEvent":
        return cls.model_validate_json(data)

    @property
    def event_id(self) -> str:
        return self.metadata.event_id

    @property
    def timestamp(self) -> datetime:
        return self.metadata.timestamp


EventT = TypeVar("EventT", bound=DomainEvent)
