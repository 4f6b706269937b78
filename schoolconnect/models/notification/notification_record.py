from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Enum, JSON, Index
from sqlalchemy.dialects.postgresql import UUID
from ..base import Base
import enum


class NotificationType(enum.Enum):
    ANNOUNCEMENT = "announcement"
    HOMEWORK = "homework"
    CLASSWORK = "classwork"
    ATTENDANCE = "attendance"
    MESSAGE_APPROVAL = "message_approval"
    CALENDAR_EVENT = "calendar_event"
    SYSTEM = "system"


class NotificationPriority(enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationRecord(Base):
    """Persisted per-recipient notification, the source of truth for delivery"""
    __tablename__ = "notification_records"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id"), nullable=True)

    notification_type = Column(
        Enum(NotificationType, native_enum=False, values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        nullable=False
    )
    priority = Column(
        Enum(NotificationPriority, native_enum=False, values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        default=NotificationPriority.NORMAL,
        nullable=False
    )
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    related_id = Column(UUID(as_uuid=True), nullable=True)

    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_notification_user_unread', 'user_id', 'is_read'),
    )
