from typing import List

from fastapi import APIRouter, Depends, status

from src.services.auth_service.dependencies import get_current_user
from src.services.messaging_service.dependencies import get_messaging_service
from src.services.messaging_service.service import MessagingService
from src.shared.models.message_dto import ConversationDTO, MessageDTO, RecipientDTO, SendMessageRequest
from src.shared.models.user_dto import AuthUser

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.post("", response_model=MessageDTO, status_code=status.HTTP_201_CREATED)
async def send_message(
    request: SendMessageRequest,
    user: AuthUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.send_message(user, request)


@router.get("/conversations", response_model=List[ConversationDTO])
async def get_conversations(
    user: AuthUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.list_conversations(user)


@router.get("/recipients", response_model=List[RecipientDTO])
async def get_recipients(
    user: AuthUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.list_recipients(user)


# Declared after the static paths so /conversations and /recipients win
@router.get("/{user_id}", response_model=List[MessageDTO])
async def get_thread(
    user_id: int,
    user: AuthUser = Depends(get_current_user),
    service: MessagingService = Depends(get_messaging_service),
):
    return await service.get_thread(user, user_id)
