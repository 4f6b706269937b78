# schoolconnect/routers/chat/chat_router.py
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Query

from ..deps import get_actor, get_chat_service
from ...models.user import User
from ...schemas.chat_schemas import (
    CreateThreadRequest, SendMessageRequest, EditMessageRequest, RejectMessageRequest,
    ThreadResponse, MessageResponse, EditMessageResponse, ModerationResponse
)
from ...schemas.pagination import PaginatedResponse
from ...services.chat import ChatService, ModerationOutcome

router = APIRouter(prefix="/api/v1/chat", tags=["Chat"])


def _moderation_response(outcome: ModerationOutcome) -> ModerationResponse:
    return ModerationResponse(
        message=MessageResponse.model_validate(outcome.message),
        changed=outcome.changed,
        recipients_notified=outcome.recipients_notified,
    )


@router.post("/threads", response_model=ThreadResponse, status_code=201)
async def create_thread(
    request: CreateThreadRequest,
    actor: User = Depends(get_actor),
    service: ChatService = Depends(get_chat_service)
):
    """Create a thread; the acting user joins as a participant"""
    return await service.create_thread(actor, request)


@router.get("/threads/{thread_id}/messages", response_model=List[MessageResponse])
async def list_messages(
    thread_id: UUID,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: User = Depends(get_actor),
    service: ChatService = Depends(get_chat_service)
):
    """Messages visible to the acting user, oldest first"""
    return await service.list_messages(thread_id, actor, limit=limit, offset=offset)


@router.post("/threads/{thread_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    thread_id: UUID,
    request: SendMessageRequest,
    actor: User = Depends(get_actor),
    service: ChatService = Depends(get_chat_service)
):
    """Post a message. Teachers and parents go through moderation."""
    return await service.send_message(thread_id, actor, request)


@router.get("/messages/pending", response_model=PaginatedResponse[MessageResponse])
async def list_pending_messages(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    actor: User = Depends(get_actor),
    service: ChatService = Depends(get_chat_service)
):
    return await service.list_pending(actor, page=page, size=size)


@router.put("/messages/{message_id}", response_model=EditMessageResponse)
async def edit_message(
    message_id: UUID,
    request: EditMessageRequest,
    actor: User = Depends(get_actor),
    service: ChatService = Depends(get_chat_service)
):
    message, reapproval = await service.edit_message(message_id, actor, request.content)
    return EditMessageResponse(message=MessageResponse.model_validate(message), requires_reapproval=reapproval)


@router.post("/messages/{message_id}/approve", response_model=ModerationResponse)
async def approve_message(
    message_id: UUID,
    actor: User = Depends(get_actor),
    service: ChatService = Depends(get_chat_service)
):
    """Approve a pending or rejected message. Approving twice is a no-op."""
    outcome = await service.approve(message_id, actor)
    return _moderation_response(outcome)


@router.post("/messages/{message_id}/reject", response_model=ModerationResponse)
async def reject_message(
    message_id: UUID,
    request: RejectMessageRequest,
    actor: User = Depends(get_actor),
    service: ChatService = Depends(get_chat_service)
):
    outcome = await service.reject(message_id, actor, request.rejection_reason)
    return _moderation_response(outcome)
