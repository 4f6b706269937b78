from sqlalchemy import Column, String, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from ..base import Base
from ..user import UserRole
import enum


class ThreadType(enum.Enum):
    DIRECT = "direct"
    GROUP = "group"


class ThreadStatus(enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class ChatThread(Base):
    __tablename__ = "chat_threads"

    title = Column(String(200), nullable=True)
    thread_type = Column(
        Enum(ThreadType, native_enum=False, values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        default=ThreadType.DIRECT,
        nullable=False
    )
    status = Column(
        Enum(ThreadStatus, native_enum=False, values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        default=ThreadStatus.ACTIVE,
        nullable=False
    )
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    participants = relationship("ChatParticipant", back_populates="thread", cascade="all, delete-orphan")


class ChatParticipant(Base):
    __tablename__ = "chat_participants"

    thread_id = Column(UUID(as_uuid=True), ForeignKey("chat_threads.id"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    role = Column(
        Enum(UserRole, native_enum=False, values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        nullable=False
    )

    thread = relationship("ChatThread", back_populates="participants")

    __table_args__ = (
        UniqueConstraint('thread_id', 'user_id', name='unique_thread_participant'),
    )
