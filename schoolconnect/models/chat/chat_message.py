from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Enum, Index
from sqlalchemy.dialects.postgresql import UUID
from ..base import Base
from ..user import UserRole
import enum


class ApprovalStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class MessageType(enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    thread_id = Column(UUID(as_uuid=True), ForeignKey("chat_threads.id"), nullable=False, index=True)
    sender_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    sender_role = Column(
        Enum(UserRole, native_enum=False, values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        nullable=False
    )
    content = Column(Text, nullable=False)
    message_type = Column(
        Enum(MessageType, native_enum=False, values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        default=MessageType.TEXT,
        nullable=False
    )

    # Moderation
    approval_status = Column(
        Enum(ApprovalStatus, native_enum=False, values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        default=ApprovalStatus.PENDING,
        nullable=False
    )
    rejection_reason = Column(String(500), nullable=True)
    approver_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    edited_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_chat_message_thread_time', 'thread_id', 'created_at'),
        Index('idx_chat_message_approval', 'approval_status', 'created_at'),
    )
