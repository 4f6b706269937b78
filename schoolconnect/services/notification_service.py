# schoolconnect/services/notification_service.py
from typing import Any, Dict, Optional
from uuid import UUID
from datetime import datetime, timedelta, timezone
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func, and_

from ..core.exceptions import NotFoundError, ValidationException
from ..models.notification import NotificationRecord
from ..schemas.notification_schemas import DispatchResult, NotificationEvent, NotificationPayload, NotificationStats
from .base_service import BaseService
from .notifications.audience import AudienceResolver
from .notifications.dispatcher import NotificationDispatcher
from .notifications.push_transport import PushTransport, get_push_transport
from .realtime import ConnectionRegistry, connection_registry

logger = logging.getLogger(__name__)


class NotificationService(BaseService[NotificationRecord]):
    """Publishes events to their audience and reads back a user's notification records"""

    def __init__(
        self,
        db: AsyncSession,
        registry: Optional[ConnectionRegistry] = None,
        push_transport: Optional[PushTransport] = None,
        push_timeout: Optional[float] = None,
    ):
        super().__init__(NotificationRecord, db)
        self.resolver = AudienceResolver(db)
        self.dispatcher = NotificationDispatcher(
            db,
            registry if registry is not None else connection_registry,
            push_transport if push_transport is not None else get_push_transport(),
            push_timeout,
        )

    async def publish(self, event: NotificationEvent) -> DispatchResult:
        """Resolve the event's audience and deliver to every recipient"""
        recipients = await self.resolver.resolve(event)
        if not recipients:
            logger.info(f"No recipients for {event.notification_type.value} event '{event.title}'")
            return DispatchResult()

        payload = NotificationPayload.from_event(event)
        return await self.dispatcher.dispatch(recipients, payload)

    async def list_for_user(
        self,
        user_id: UUID,
        page: int = 1,
        size: int = 20,
        unread_only: bool = False,
        student_id: Optional[UUID] = None
    ) -> Dict[str, Any]:
        return await self.get_paginated(
            page=page,
            size=size,
            user_id=user_id,
            student_id=student_id,
            is_read=False if unread_only else None
        )

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> NotificationRecord:
        record = await self.get(notification_id)
        # Another user's record is reported as missing
        if not record or record.user_id != user_id:
            raise NotFoundError("Notification", notification_id)

        if not record.is_read:
            record.is_read = True
            record.read_at = datetime.now(timezone.utc)
            await self.db.commit()
            await self.db.refresh(record)
        return record

    async def mark_all_read(self, user_id: UUID, student_id: Optional[UUID] = None) -> int:
        stmt = update(self.model).where(
            self._unread_clause(user_id, student_id)
        ).values(is_read=True, read_at=datetime.now(timezone.utc))
        result = await self.db.execute(stmt)
        await self.db.commit()
        logger.info(f"Marked {result.rowcount} notifications read for user {user_id}")
        return result.rowcount

    async def unread_count(self, user_id: UUID, student_id: Optional[UUID] = None) -> int:
        stmt = select(func.count()).select_from(self.model).where(self._unread_clause(user_id, student_id))
        return (await self.db.execute(stmt)).scalar() or 0

    async def get_stats(self, user_id: UUID) -> NotificationStats:
        """Totals for the user's notifications, broken down by type and priority"""
        stmt = select(
            self.model.notification_type,
            self.model.priority,
            self.model.is_read,
            func.count()
        ).where(
            self.model.user_id == user_id,
            self.model.is_deleted.is_(False)
        ).group_by(self.model.notification_type, self.model.priority, self.model.is_read)

        stats = NotificationStats()
        for notification_type, priority, is_read, count in (await self.db.execute(stmt)).all():
            stats.total += count
            if not is_read:
                stats.unread += count
            stats.by_type[notification_type.value] = stats.by_type.get(notification_type.value, 0) + count
            stats.by_priority[priority.value] = stats.by_priority.get(priority.value, 0) + count
        return stats

    async def delete_older_than(self, days: int) -> int:
        """Remove records created more than ``days`` ago, read or not. Returns how many were removed."""
        if days < 1:
            raise ValidationException("Retention must be at least one day")
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await self.db.execute(
            delete(self.model).where(self.model.created_at < cutoff).execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(f"Deleted {result.rowcount} notifications older than {days} days")
        return result.rowcount

    def _unread_clause(self, user_id: UUID, student_id: Optional[UUID]):
        conditions = [
            self.model.user_id == user_id,
            self.model.is_read.is_(False),
            self.model.is_deleted.is_(False)
        ]
        if student_id is not None:
            conditions.append(self.model.student_id == student_id)
        return and_(*conditions)
