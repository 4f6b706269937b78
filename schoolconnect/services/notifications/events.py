# schoolconnect/services/notifications/events.py
"""Builders turning domain actions into NotificationEvents.

Each builder only decides the content and the target. Who actually receives
the event is worked out later by the AudienceResolver.
"""
from typing import Iterable, Optional
from uuid import UUID

from ...models.chat import ChatMessage
from ...models.notification import NotificationType, NotificationPriority
from ...schemas.notification_schemas import (
    NotificationEvent, NotificationTarget,
    AnnouncementPublished, HomeworkAssigned, ClassworkAssigned, AttendanceMarked, CalendarEventCreated,
)

PREVIEW_LENGTH = 100
TITLE_LENGTH = 200

ATTENDANCE_PRIORITY = {
    "absent": NotificationPriority.HIGH,
    "late": NotificationPriority.NORMAL,
    "half_day": NotificationPriority.NORMAL,
    "leave": NotificationPriority.NORMAL,
    "present": NotificationPriority.LOW,
}


def _preview(content: str) -> str:
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[:PREVIEW_LENGTH].rstrip() + "..."


def _title(prefix: str, text: str) -> str:
    """Prefixed title cut to fit the notification title column"""
    title = f"{prefix}: {text}"
    if len(title) <= TITLE_LENGTH:
        return title
    return title[:TITLE_LENGTH - 3].rstrip() + "..."


def announcement_published(announcement: AnnouncementPublished) -> NotificationEvent:
    """Class-scoped when class divisions are given, else role-scoped, else school-wide"""
    exclude = [announcement.author_id]
    if announcement.class_division_ids:
        target = NotificationTarget.for_classes(announcement.class_division_ids, exclude=exclude)
    elif announcement.target_roles:
        target = NotificationTarget.for_roles(announcement.target_roles, exclude=exclude)
    else:
        target = NotificationTarget.school_wide(exclude=exclude)

    return NotificationEvent(
        notification_type=NotificationType.ANNOUNCEMENT,
        priority=announcement.priority,
        title=announcement.title,
        body=_preview(announcement.content),
        target=target,
        related_id=announcement.announcement_id,
        data={
            "announcement_id": str(announcement.announcement_id),
            "author_id": str(announcement.author_id),
        },
    )


def homework_assigned(homework: HomeworkAssigned) -> NotificationEvent:
    body = homework.title
    if homework.due_date:
        body += f" (due {homework.due_date.strftime('%d %b %Y')})"
    return NotificationEvent(
        notification_type=NotificationType.HOMEWORK,
        title=_title("New homework", homework.subject),
        body=body,
        target=NotificationTarget.for_classes([homework.class_division_id], exclude=[homework.teacher_id]),
        related_id=homework.homework_id,
        data={
            "homework_id": str(homework.homework_id),
            "class_division_id": str(homework.class_division_id),
            "subject": homework.subject,
            "due_date": homework.due_date.isoformat() if homework.due_date else None,
        },
    )


def classwork_assigned(classwork: ClassworkAssigned) -> NotificationEvent:
    return NotificationEvent(
        notification_type=NotificationType.CLASSWORK,
        priority=NotificationPriority.LOW,
        title=_title("Classwork update", classwork.subject),
        body=_preview(classwork.summary),
        target=NotificationTarget.for_classes([classwork.class_division_id], exclude=[classwork.teacher_id]),
        related_id=classwork.classwork_id,
        data={
            "classwork_id": str(classwork.classwork_id),
            "class_division_id": str(classwork.class_division_id),
            "subject": classwork.subject,
        },
    )


def attendance_marked(attendance: AttendanceMarked) -> NotificationEvent:
    status_label = attendance.status.replace("_", " ")
    return NotificationEvent(
        notification_type=NotificationType.ATTENDANCE,
        priority=ATTENDANCE_PRIORITY.get(attendance.status, NotificationPriority.NORMAL),
        title="Attendance update",
        body=f"{attendance.student_name} was marked {status_label} on {attendance.attendance_date.strftime('%d %b %Y')}",
        target=NotificationTarget.for_student(attendance.student_id, exclude=[attendance.marked_by]),
        related_id=attendance.attendance_id,
        data={
            "attendance_id": str(attendance.attendance_id),
            "status": attendance.status,
            "attendance_date": attendance.attendance_date.date().isoformat(),
        },
    )


def calendar_event_created(event: CalendarEventCreated) -> NotificationEvent:
    exclude = [event.created_by]
    if event.class_division_ids:
        target = NotificationTarget.for_classes(event.class_division_ids, exclude=exclude)
    else:
        target = NotificationTarget.school_wide(exclude=exclude)
    body = f"{event.title} on {event.starts_at.strftime('%d %b %Y, %H:%M')}"
    if event.description:
        body += f": {_preview(event.description)}"
    return NotificationEvent(
        notification_type=NotificationType.CALENDAR_EVENT,
        title=_title("New event", event.title),
        body=body,
        target=target,
        related_id=event.event_id,
        data={"event_id": str(event.event_id), "starts_at": event.starts_at.isoformat()},
    )


def _message_data(message: ChatMessage, **extra) -> dict:
    data = {
        "thread_id": str(message.thread_id),
        "message_id": str(message.id),
        "sender_id": str(message.sender_id),
        "approval_status": message.approval_status.value,
    }
    data.update(extra)
    return data


def message_approved(message: ChatMessage, participant_ids: Iterable[UUID], approver_id: UUID) -> NotificationEvent:
    """Everyone in the thread except the approver hears about the approval, including the sender"""
    return NotificationEvent(
        notification_type=NotificationType.MESSAGE_APPROVAL,
        title="Message approved",
        body=_preview(message.content),
        target=NotificationTarget.for_users(list(participant_ids), exclude=[approver_id]),
        related_id=message.id,
        data=_message_data(message, approver_id=str(approver_id)),
    )


def message_rejected(message: ChatMessage) -> NotificationEvent:
    return NotificationEvent(
        notification_type=NotificationType.MESSAGE_APPROVAL,
        priority=NotificationPriority.HIGH,
        title="Message rejected",
        body=f"Your message was not approved. Reason: {message.rejection_reason}",
        target=NotificationTarget.for_users([message.sender_id]),
        related_id=message.id,
        data=_message_data(message, rejection_reason=message.rejection_reason),
    )


def message_posted(message: ChatMessage, participant_ids: Iterable[UUID]) -> NotificationEvent:
    return NotificationEvent(
        notification_type=NotificationType.MESSAGE_APPROVAL,
        title="New message",
        body=_preview(message.content),
        target=NotificationTarget.for_users(list(participant_ids), exclude=[message.sender_id]),
        related_id=message.id,
        data=_message_data(message),
    )


def system_notice(
    title: str,
    body: str,
    target: Optional[NotificationTarget] = None,
    priority: NotificationPriority = NotificationPriority.NORMAL,
) -> NotificationEvent:
    return NotificationEvent(
        notification_type=NotificationType.SYSTEM,
        priority=priority,
        title=title,
        body=body,
        target=target or NotificationTarget.school_wide(),
    )
