"""Messaging routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ...backend.base import Backend
from ...core.container import ApplicationContainer
from ...core.security import PermissionChecker, get_container, get_user_backend
from ...core.session import SessionRecord
from ...schemas.common import SuccessResponse
from ...schemas.message import (
    ConversationCreate, ConversationResponse, MessageCreate,
    MessageResponse, UnreadResponse,
)
from ...services.messaging import MessagingService

router = APIRouter(prefix="/messages", tags=["Messaging"])

can_message = PermissionChecker(["messaging"], scope="user")


def get_messaging_service(
    session: SessionRecord = Depends(can_message),
    backend: Backend = Depends(get_user_backend),
    container: ApplicationContainer = Depends(get_container),
) -> MessagingService:
    return MessagingService(backend, session.account, container.clock)


@router.get("/conversations", response_model=List[ConversationResponse])
async def list_conversations(
    search: Optional[str] = Query(None, description="Match on conversation title"),
    service: MessagingService = Depends(get_messaging_service),
):
    """Conversations the signed-in account takes part in, most recent first."""
    return [ConversationResponse.model_validate(c) for c in await service.conversations(search)]


@router.post("/conversations", response_model=ConversationResponse, status_code=201)
async def start_conversation(
    request: ConversationCreate,
    service: MessagingService = Depends(get_messaging_service),
):
    """Start a conversation, or reopen the one with the same participants."""
    conversation = await service.create_conversation(request.participant_ids, request.title)
    return ConversationResponse.model_validate(conversation)


@router.get("/conversations/{conversation_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    conversation_id: str,
    service: MessagingService = Depends(get_messaging_service),
):
    return [MessageResponse.model_validate(m) for m in await service.messages(conversation_id)]


@router.post("/conversations/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: str,
    request: MessageCreate,
    service: MessagingService = Depends(get_messaging_service),
):
    message = await service.send_message(conversation_id, request.content, request.type)
    return MessageResponse.model_validate(message)


@router.post("/conversations/{conversation_id}/read", response_model=SuccessResponse)
async def mark_conversation_read(
    conversation_id: str,
    service: MessagingService = Depends(get_messaging_service),
):
    marked = await service.mark_read(conversation_id)
    return SuccessResponse(message="Conversation marked as read", data={"marked": marked})


@router.get("/unread", response_model=UnreadResponse)
async def unread_count(
    conversation_id: Optional[str] = Query(None),
    service: MessagingService = Depends(get_messaging_service),
):
    return UnreadResponse(unread=await service.unread_count(conversation_id))
