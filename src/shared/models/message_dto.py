from datetime import datetime
from typing import Optional

from pydantic import Field

from src.shared.models.common import ApiModel
from src.shared.models.enums import MessageType, UserRole


class MessageDTO(ApiModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    type: MessageType
    timestamp: datetime


class SendMessageRequest(ApiModel):
    receiver_id: int
    content: str = Field(min_length=1, max_length=5000)
    type: Optional[MessageType] = None


class ConversationDTO(ApiModel):
    user_id: int
    user_name: str
    user_role: UserRole
    last_message: str
    last_message_time: datetime
    unread_count: int = 0


class RecipientDTO(ApiModel):
    id: int
    name: str
    email: Optional[str] = None
    role: UserRole
