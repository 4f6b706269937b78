# schoolconnect/schemas/chat_schemas.py
from typing import List, Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.chat import ApprovalStatus, MessageType, ThreadStatus, ThreadType
from ..models.user import UserRole


class CreateThreadRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    participant_ids: List[UUID] = Field(..., min_length=1)
    thread_type: ThreadType = ThreadType.DIRECT


class SendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1)
    message_type: MessageType = MessageType.TEXT


class EditMessageRequest(BaseModel):
    content: str = Field(..., min_length=1)


class RejectMessageRequest(BaseModel):
    rejection_reason: str = Field(..., min_length=1, max_length=500)


class ParticipantResponse(BaseModel):
    user_id: UUID
    role: UserRole

    class Config:
        from_attributes = True


class ThreadResponse(BaseModel):
    id: UUID
    title: Optional[str] = None
    thread_type: ThreadType
    status: ThreadStatus
    created_by: UUID
    participants: List[ParticipantResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    id: UUID
    thread_id: UUID
    sender_id: UUID
    sender_role: UserRole
    content: str
    message_type: MessageType
    approval_status: ApprovalStatus
    rejection_reason: Optional[str] = None
    approver_id: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    edited_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class EditMessageResponse(BaseModel):
    message: MessageResponse
    requires_reapproval: bool


class ModerationResponse(BaseModel):
    message: MessageResponse
    # False when the message was already approved and nothing was dispatched
    changed: bool
    recipients_notified: int = 0
