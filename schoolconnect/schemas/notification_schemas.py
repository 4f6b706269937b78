# schoolconnect/schemas/notification_schemas.py
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from uuid import UUID
import enum
from pydantic import BaseModel, Field, model_validator

from ..models.user import UserRole
from ..models.notification import NotificationType, NotificationPriority


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TargetKind(str, enum.Enum):
    SCHOOL_WIDE = "school_wide"
    ROLES = "roles"
    CLASS_DIVISIONS = "class_divisions"
    STUDENT = "student"
    USERS = "users"


class NotificationTarget(BaseModel):
    """Who an event is aimed at. Exactly one targeting field is used, chosen by ``kind``."""
    kind: TargetKind
    roles: List[UserRole] = Field(default_factory=list)
    class_division_ids: List[UUID] = Field(default_factory=list)
    student_id: Optional[UUID] = None
    user_ids: List[UUID] = Field(default_factory=list)
    exclude_user_ids: List[UUID] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_kind_fields(self):
        if self.kind == TargetKind.ROLES and not self.roles:
            raise ValueError("roles target requires at least one role")
        if self.kind == TargetKind.CLASS_DIVISIONS and not self.class_division_ids:
            raise ValueError("class_divisions target requires at least one class division id")
        if self.kind == TargetKind.STUDENT and self.student_id is None:
            raise ValueError("student target requires student_id")
        return self

    @classmethod
    def school_wide(cls, exclude: Optional[List[UUID]] = None) -> "NotificationTarget":
        return cls(kind=TargetKind.SCHOOL_WIDE, exclude_user_ids=exclude or [])

    @classmethod
    def for_roles(cls, roles: List[UserRole], exclude: Optional[List[UUID]] = None) -> "NotificationTarget":
        return cls(kind=TargetKind.ROLES, roles=roles, exclude_user_ids=exclude or [])

    @classmethod
    def for_classes(cls, class_division_ids: List[UUID], exclude: Optional[List[UUID]] = None) -> "NotificationTarget":
        return cls(kind=TargetKind.CLASS_DIVISIONS, class_division_ids=class_division_ids, exclude_user_ids=exclude or [])

    @classmethod
    def for_student(cls, student_id: UUID, exclude: Optional[List[UUID]] = None) -> "NotificationTarget":
        return cls(kind=TargetKind.STUDENT, student_id=student_id, exclude_user_ids=exclude or [])

    @classmethod
    def for_users(cls, user_ids: List[UUID], exclude: Optional[List[UUID]] = None) -> "NotificationTarget":
        return cls(kind=TargetKind.USERS, user_ids=user_ids, exclude_user_ids=exclude or [])


class NotificationEvent(BaseModel):
    """Ephemeral description of something that happened and who should hear about it"""
    notification_type: NotificationType
    priority: NotificationPriority = NotificationPriority.NORMAL
    title: str = Field(..., min_length=1, max_length=200)
    body: str
    target: NotificationTarget
    related_id: Optional[UUID] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


class AudienceReason(str, enum.Enum):
    OVERSIGHT = "oversight"
    ROLE = "role"
    CLASS = "class"
    STUDENT = "student"
    DIRECT = "direct"

    @property
    def rank(self) -> int:
        return _REASON_RANK[self]


_REASON_RANK = {
    AudienceReason.OVERSIGHT: 1,
    AudienceReason.ROLE: 2,
    AudienceReason.CLASS: 3,
    AudienceReason.STUDENT: 4,
    AudienceReason.DIRECT: 5,
}


class RecipientContext(BaseModel):
    user_id: UUID
    role: UserRole
    reason: AudienceReason
    student_id: Optional[UUID] = None
    class_division_id: Optional[UUID] = None


class NotificationPayload(BaseModel):
    notification_type: NotificationType
    priority: NotificationPriority = NotificationPriority.NORMAL
    title: str
    body: str
    data: Dict[str, Any] = Field(default_factory=dict)
    related_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_event(cls, event: NotificationEvent) -> "NotificationPayload":
        return cls(
            notification_type=event.notification_type,
            priority=event.priority,
            title=event.title,
            body=event.body,
            data=event.data,
            related_id=event.related_id,
            created_at=event.created_at,
        )

    def for_recipient(self, context: RecipientContext, notification_id: Optional[UUID] = None) -> dict:
        """JSON-ready message for one recipient, used by live and push delivery"""
        message = self.model_dump(mode="json")
        message["student_id"] = str(context.student_id) if context.student_id else None
        message["reason"] = context.reason.value
        if notification_id:
            message["id"] = str(notification_id)
        return message


class DeliveryFailure(BaseModel):
    user_id: UUID
    reason: str


class DispatchResult(BaseModel):
    sent: int = 0
    failed: int = 0
    failures: List[DeliveryFailure] = Field(default_factory=list)

    def record_sent(self):
        self.sent += 1

    def record_failure(self, user_id: UUID, reason: str):
        self.failed += 1
        self.failures.append(DeliveryFailure(user_id=user_id, reason=reason))


# API request/response models

class NotificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    student_id: Optional[UUID] = None
    notification_type: NotificationType
    priority: NotificationPriority
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None
    related_id: Optional[UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationStats(BaseModel):
    total: int = 0
    unread: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)


class AnnouncementPublished(BaseModel):
    announcement_id: UUID
    author_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    content: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    target_roles: List[UserRole] = Field(default_factory=list)
    class_division_ids: List[UUID] = Field(default_factory=list)


class HomeworkAssigned(BaseModel):
    homework_id: UUID
    teacher_id: UUID
    class_division_id: UUID
    subject: str
    title: str = Field(..., min_length=1, max_length=200)
    due_date: Optional[datetime] = None


class ClassworkAssigned(BaseModel):
    classwork_id: UUID
    teacher_id: UUID
    class_division_id: UUID
    subject: str
    summary: str


class AttendanceMarked(BaseModel):
    attendance_id: UUID
    marked_by: UUID
    student_id: UUID
    student_name: str
    status: str = Field(..., pattern="^(present|absent|late|half_day|leave)$")
    attendance_date: datetime


class CalendarEventCreated(BaseModel):
    event_id: UUID
    created_by: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    starts_at: datetime
    class_division_ids: List[UUID] = Field(default_factory=list)
