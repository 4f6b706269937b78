# schoolconnect/routers/notifications.py
from typing import Iterable, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import get_actor, get_notification_service
from ..core.config import settings
from ..core.database import get_db
from ..core.exceptions import Forbidden
from ..models.user import User, UserRole
from ..schemas.notification_schemas import (
    DispatchResult, NotificationResponse, NotificationStats,
    AnnouncementPublished, HomeworkAssigned, ClassworkAssigned, AttendanceMarked, CalendarEventCreated
)
from ..schemas.pagination import PaginatedResponse
from ..services.directory_service import DirectoryService
from ..services.notification_service import NotificationService
from ..services.notifications import events
from ..services.permissions import can_moderate

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


def _ensure_is_actor(actor: User, claimed_id: UUID):
    if actor.id != claimed_id:
        raise Forbidden("Events can only be published on behalf of the acting user")


async def _ensure_classes(directory: DirectoryService, actor: User, class_division_ids: Iterable[UUID]):
    """Teachers may only target classes they are currently assigned to"""
    if actor.role == UserRole.PARENT:
        raise Forbidden("Parents cannot publish notifications")
    for class_division_id in class_division_ids:
        await directory.ensure_class_access(actor, class_division_id)


@router.post("/events/announcement", response_model=DispatchResult)
async def publish_announcement(
    announcement: AnnouncementPublished,
    actor: User = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: NotificationService = Depends(get_notification_service)
):
    _ensure_is_actor(actor, announcement.author_id)
    if not announcement.class_division_ids and not can_moderate(actor.role):
        raise Forbidden("Only principals and admins can publish school-wide or role announcements")
    await _ensure_classes(DirectoryService(db), actor, announcement.class_division_ids)
    return await service.publish(events.announcement_published(announcement))


@router.post("/events/homework", response_model=DispatchResult)
async def publish_homework(
    homework: HomeworkAssigned,
    actor: User = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: NotificationService = Depends(get_notification_service)
):
    _ensure_is_actor(actor, homework.teacher_id)
    await _ensure_classes(DirectoryService(db), actor, [homework.class_division_id])
    return await service.publish(events.homework_assigned(homework))


@router.post("/events/classwork", response_model=DispatchResult)
async def publish_classwork(
    classwork: ClassworkAssigned,
    actor: User = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: NotificationService = Depends(get_notification_service)
):
    _ensure_is_actor(actor, classwork.teacher_id)
    await _ensure_classes(DirectoryService(db), actor, [classwork.class_division_id])
    return await service.publish(events.classwork_assigned(classwork))


@router.post("/events/attendance", response_model=DispatchResult)
async def publish_attendance(
    attendance: AttendanceMarked,
    actor: User = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: NotificationService = Depends(get_notification_service)
):
    _ensure_is_actor(actor, attendance.marked_by)
    if actor.role == UserRole.PARENT:
        raise Forbidden("Parents cannot mark attendance")
    await DirectoryService(db).ensure_student_access(actor, attendance.student_id)
    return await service.publish(events.attendance_marked(attendance))


@router.post("/events/calendar-event", response_model=DispatchResult)
async def publish_calendar_event(
    calendar_event: CalendarEventCreated,
    actor: User = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    service: NotificationService = Depends(get_notification_service)
):
    _ensure_is_actor(actor, calendar_event.created_by)
    if not calendar_event.class_division_ids and not can_moderate(actor.role):
        raise Forbidden("Only principals and admins can create school-wide events")
    await _ensure_classes(DirectoryService(db), actor, calendar_event.class_division_ids)
    return await service.publish(events.calendar_event_created(calendar_event))


@router.get("", response_model=PaginatedResponse[NotificationResponse])
async def list_notifications(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    student_id: Optional[UUID] = Query(None, description="Only notifications about this student"),
    actor: User = Depends(get_actor),
    service: NotificationService = Depends(get_notification_service)
):
    """The acting user's notifications, newest first"""
    return await service.list_for_user(actor.id, page=page, size=size, unread_only=unread_only, student_id=student_id)


@router.get("/unread-count", response_model=dict)
async def get_unread_count(
    student_id: Optional[UUID] = Query(None),
    actor: User = Depends(get_actor),
    service: NotificationService = Depends(get_notification_service)
):
    return {"user_id": str(actor.id), "unread_count": await service.unread_count(actor.id, student_id=student_id)}


@router.get("/stats", response_model=NotificationStats)
async def get_notification_stats(
    actor: User = Depends(get_actor),
    service: NotificationService = Depends(get_notification_service)
):
    return await service.get_stats(actor.id)


@router.post("/read-all", response_model=dict)
async def mark_all_notifications_read(
    student_id: Optional[UUID] = Query(None),
    actor: User = Depends(get_actor),
    service: NotificationService = Depends(get_notification_service)
):
    updated = await service.mark_all_read(actor.id, student_id=student_id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    actor: User = Depends(get_actor),
    service: NotificationService = Depends(get_notification_service)
):
    return await service.mark_read(notification_id, actor.id)


@router.delete("/cleanup", response_model=dict)
async def delete_old_notifications(
    days: Optional[int] = Query(None, ge=1, description="Defaults to the configured retention"),
    actor: User = Depends(get_actor),
    service: NotificationService = Depends(get_notification_service)
):
    """Retention sweep over every user's notifications"""
    if not can_moderate(actor.role):
        raise Forbidden("Only principals and admins can clean up notifications")
    deleted = await service.delete_older_than(days or settings.notification_retention_days)
    return {"message": "Old notifications deleted", "deleted": deleted}
