from datetime import datetime, timezone
from typing import Dict, List

from src.common.constants import ServerEvent
from src.common.logger import log_debug
from src.core.access import (
    can_message,
    can_send_message_type,
    counterpart_pair,
    resolve_default_message_type,
)
from src.infra.event_bus import EventBus
from src.services.messaging_service.repository import MessageRepository
from src.services.realtime_ws.broadcaster import RoomBroadcaster
from src.services.realtime_ws.connection_manager import user_room
from src.shared.errors import Forbidden, NotFound
from src.shared.events.message_events import MessageSent
from src.shared.models.enums import UserRole
from src.shared.models.message_dto import ConversationDTO, MessageDTO, RecipientDTO, SendMessageRequest
from src.shared.models.user_dto import AuthUser

DENIAL_MESSAGES = {
    (UserRole.DRIVER, UserRole.DRIVER): "Forbidden: Drivers can only message admins and parents",
    (UserRole.DRIVER, UserRole.PARENT): "Forbidden: You can only message parents of students on your trips",
    (UserRole.PARENT, UserRole.PARENT): "Forbidden: Parents can only message admins and drivers",
    (UserRole.PARENT, UserRole.DRIVER): "Forbidden: You can only message drivers of trips your children are on",
}


class MessagingService:
    def __init__(
        self,
        repository: MessageRepository,
        event_bus: EventBus,
        broadcaster: RoomBroadcaster,
        recent_days: int = 7,
    ):
        self.repository = repository
        self.event_bus = event_bus
        self.broadcaster = broadcaster
        self.recent_days = recent_days

    async def send_message(self, sender: AuthUser, request: SendMessageRequest) -> MessageDTO:
        receiver_summary = await self.repository.get_user_summary(request.receiver_id)
        if receiver_summary is None:
            raise NotFound("Receiver not found")
        receiver = AuthUser(id=receiver_summary.id, role=receiver_summary.role)

        message_type = request.type or resolve_default_message_type(sender.role)
        if not can_send_message_type(sender.role, message_type):
            raise Forbidden("Only admin and driver can send notification messages")

        shared_trips = []
        pair = counterpart_pair(sender, receiver)
        if pair is not None:
            shared_trips = await self.repository.list_shared_trips(*pair)

        allowed = can_message(
            sender,
            receiver,
            shared_trips,
            now=datetime.now(timezone.utc),
            recent_days=self.recent_days,
        )
        if not allowed:
            raise Forbidden(DENIAL_MESSAGES.get((sender.role, receiver.role), "Forbidden"))

        message = await self.repository.create_message(
            sender.id, receiver.id, request.content, message_type
        )

        payload = message.to_payload()
        await self.broadcaster.emit(user_room(receiver.id), ServerEvent.MESSAGE_BROADCAST, payload)
        if receiver.id != sender.id:
            await self.broadcaster.emit(user_room(sender.id), ServerEvent.MESSAGE_BROADCAST, payload)

        await self.event_bus.publish(MessageSent(
            message_id=message.id,
            sender_id=sender.id,
            receiver_id=receiver.id,
            message_type=message_type.value,
        ))
        await log_debug(f"Message {message.id}: {sender.id} -> {receiver.id} ({message_type})")
        return message

    async def list_conversations(self, user: AuthUser) -> List[ConversationDTO]:
        """One entry per counterpart holding the most recent message, newest first."""
        conversations: Dict[int, ConversationDTO] = {}
        for row in await self.repository.list_messages_with_counterparts(user.id):
            counterpart_id = row["counterpart_id"]
            current = conversations.get(counterpart_id)
            if current is None or row["timestamp"] > current.last_message_time:
                conversations[counterpart_id] = ConversationDTO(
                    user_id=counterpart_id,
                    user_name=row["counterpart_name"],
                    user_role=row["counterpart_role"],
                    last_message=row["content"],
                    last_message_time=row["timestamp"],
                )
        return sorted(conversations.values(), key=lambda c: c.last_message_time, reverse=True)

    async def get_thread(self, user: AuthUser, other_user_id: int) -> List[MessageDTO]:
        return await self.repository.list_thread(user.id, other_user_id)

    async def list_recipients(self, user: AuthUser) -> List[RecipientDTO]:
        if user.role == UserRole.ADMIN:
            return await self.repository.list_users_except(user.id)

        if user.role == UserRole.DRIVER:
            others = await self.repository.list_parents_for_driver(user.id)
        elif user.role == UserRole.PARENT:
            others = await self.repository.list_drivers_for_parent(user.id)
        else:
            return []

        admins = await self.repository.list_admins()
        return [r for r in admins + others if r.id != user.id]
