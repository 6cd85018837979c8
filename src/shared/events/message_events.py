# src/shared/events/message_events.py
"""
События мессенджера.
"""

from __future__ import annotations

from typing import Literal

from src.shared.events.base import DomainEvent


class MessageSent(DomainEvent):
    """Событие: сообщение сохранено и доставлено в inbox-комнаты (для push-уведомлений)."""

    event_type: Literal["message.sent"] = "message.sent"

    message_id: int
    sender_id: int
    receiver_id: int
    message_type: str
