# schoolconnect/services/chat/chat_service.py
from typing import Any, Dict, List, NamedTuple, Optional, Set, Tuple
from uuid import UUID
from datetime import datetime, timezone
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy import select, update, or_

from ..base_service import BaseService
from ..directory_service import DirectoryService
from ..notification_service import NotificationService
from ..notifications import events
from ..permissions import can_moderate
from ...core.exceptions import Forbidden, InvalidStateError, NotFoundError, ValidationException
from ...models.chat import ChatThread, ChatParticipant, ChatMessage, ApprovalStatus, ThreadStatus, ThreadType
from ...models.user import User
from ...schemas.chat_schemas import CreateThreadRequest, SendMessageRequest
from ...schemas.notification_schemas import NotificationEvent
from .approval import APPROVABLE_FROM, REJECTABLE_FROM, initial_status, requires_reapproval, status_after_edit

logger = logging.getLogger(__name__)


class ModerationOutcome(NamedTuple):
    message: ChatMessage
    # False when an approve found the message already approved
    changed: bool
    recipients_notified: int = 0


class ChatService(BaseService[ChatMessage]):
    """Threads and moderated messages.

    State changes are committed before anything is dispatched, so a
    notification never describes a transition that was rolled back.
    """

    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        super().__init__(ChatMessage, db)
        self.directory = DirectoryService(db)
        self.notifications = notifications or NotificationService(db)

    async def create_thread(self, actor: User, request: CreateThreadRequest) -> ChatThread:
        participant_ids = list(dict.fromkeys([actor.id, *request.participant_ids]))
        if request.thread_type == ThreadType.DIRECT and len(participant_ids) != 2:
            raise ValidationException("A direct thread needs exactly one other participant")

        roles = await self.directory.get_active_user_roles(participant_ids)
        for user_id in participant_ids:
            if user_id not in roles:
                raise NotFoundError("User", user_id)

        thread = ChatThread(
            title=request.title,
            thread_type=request.thread_type,
            status=ThreadStatus.ACTIVE,
            created_by=actor.id,
        )
        for user_id in participant_ids:
            thread.participants.append(ChatParticipant(user_id=user_id, role=roles[user_id]))
        self.db.add(thread)
        await self.db.commit()

        logger.info(f"Thread {thread.id} created by {actor.id} with {len(participant_ids)} participants")
        return await self.get_thread(thread.id)

    async def get_thread(self, thread_id: UUID) -> ChatThread:
        stmt = select(ChatThread).options(
            selectinload(ChatThread.participants)
        ).where(
            ChatThread.id == thread_id,
            ChatThread.is_deleted.is_(False)
        ).execution_options(populate_existing=True)
        thread = (await self.db.execute(stmt)).scalar_one_or_none()
        if not thread:
            raise NotFoundError("Thread", thread_id)
        return thread

    async def send_message(self, thread_id: UUID, actor: User, request: SendMessageRequest) -> ChatMessage:
        thread = await self.get_thread(thread_id)
        participant_ids = self._participant_ids(thread)
        if actor.id not in participant_ids:
            raise Forbidden("Only thread participants can post messages")
        if thread.status != ThreadStatus.ACTIVE:
            raise Forbidden("Thread is archived")

        status = initial_status(actor.role)
        now = datetime.now(timezone.utc)
        message = ChatMessage(
            thread_id=thread.id,
            sender_id=actor.id,
            sender_role=actor.role,
            content=request.content,
            message_type=request.message_type,
            approval_status=status,
            approver_id=actor.id if status == ApprovalStatus.APPROVED else None,
            approved_at=now if status == ApprovalStatus.APPROVED else None,
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        logger.info(f"Message {message.id} posted in thread {thread.id} as {status.value}")

        if status == ApprovalStatus.APPROVED:
            await self._notify(events.message_posted(message, participant_ids))
        return message

    async def edit_message(self, message_id: UUID, actor: User, content: str) -> Tuple[ChatMessage, bool]:
        """Returns the updated message and whether it went back to the moderation queue"""
        message = await self._get_message(message_id)
        if message.sender_id != actor.id:
            raise Forbidden("Only the sender can edit a message")
        thread = await self.get_thread(message.thread_id)
        if thread.status != ThreadStatus.ACTIVE:
            raise Forbidden("Thread is archived")

        previous = message.approval_status
        new = status_after_edit(actor.role)
        now = datetime.now(timezone.utc)

        values: Dict[str, Any] = {"content": content, "approval_status": new, "edited_at": now}
        if new == ApprovalStatus.PENDING:
            values.update(rejection_reason=None, approver_id=None, approved_at=None)
        elif previous != ApprovalStatus.APPROVED:
            values.update(rejection_reason=None, approver_id=actor.id, approved_at=now)

        # Compare-and-set against the status read above
        result = await self.db.execute(
            update(ChatMessage).where(
                ChatMessage.id == message_id,
                ChatMessage.approval_status == previous,
                ChatMessage.is_deleted.is_(False)
            ).values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            raise InvalidStateError("Message was moderated while being edited; reload and try again")
        await self.db.commit()
        await self.db.refresh(message)

        reapproval = requires_reapproval(previous, new)
        logger.info(f"Message {message_id} edited: {previous.value} -> {new.value}")
        return message, reapproval

    async def approve(self, message_id: UUID, actor: User) -> ModerationOutcome:
        if not can_moderate(actor.role):
            raise Forbidden("Only principals and admins can approve messages")
        await self._get_message(message_id)

        result = await self.db.execute(
            update(ChatMessage).where(
                ChatMessage.id == message_id,
                ChatMessage.approval_status.in_(list(APPROVABLE_FROM)),
                ChatMessage.is_deleted.is_(False)
            ).values(
                approval_status=ApprovalStatus.APPROVED,
                approver_id=actor.id,
                approved_at=datetime.now(timezone.utc),
                rejection_reason=None
            ).execution_options(synchronize_session=False)
        )
        await self.db.commit()
        message = await self._get_message(message_id, refresh=True)

        if result.rowcount == 0:
            if message.approval_status == ApprovalStatus.APPROVED:
                logger.info(f"Message {message_id} already approved; nothing to do")
                return ModerationOutcome(message, changed=False)
            raise InvalidStateError(f"Cannot approve a message that is {message.approval_status.value}")

        logger.info(f"Message {message_id} approved by {actor.id}")
        thread = await self.get_thread(message.thread_id)
        notified = await self._notify(events.message_approved(message, self._participant_ids(thread), actor.id))
        return ModerationOutcome(message, changed=True, recipients_notified=notified)

    async def reject(self, message_id: UUID, actor: User, reason: Optional[str]) -> ModerationOutcome:
        if not can_moderate(actor.role):
            raise Forbidden("Only principals and admins can reject messages")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException("A rejection reason is required")
        await self._get_message(message_id)

        result = await self.db.execute(
            update(ChatMessage).where(
                ChatMessage.id == message_id,
                ChatMessage.approval_status.in_(list(REJECTABLE_FROM)),
                ChatMessage.is_deleted.is_(False)
            ).values(
                approval_status=ApprovalStatus.REJECTED,
                rejection_reason=reason,
                approver_id=actor.id,
                approved_at=None
            ).execution_options(synchronize_session=False)
        )
        await self.db.commit()
        message = await self._get_message(message_id, refresh=True)

        if result.rowcount == 0:
            raise InvalidStateError(f"Cannot reject a message that is {message.approval_status.value}")

        logger.info(f"Message {message_id} rejected by {actor.id}")
        notified = await self._notify(events.message_rejected(message))
        return ModerationOutcome(message, changed=True, recipients_notified=notified)

    async def list_messages(self, thread_id: UUID, viewer: User, limit: int = 50, offset: int = 0) -> List[ChatMessage]:
        thread = await self.get_thread(thread_id)
        moderator = can_moderate(viewer.role)
        if not moderator and viewer.id not in self._participant_ids(thread):
            raise Forbidden("Access denied to this thread")

        stmt = select(ChatMessage).where(
            ChatMessage.thread_id == thread_id,
            ChatMessage.is_deleted.is_(False)
        )
        if not moderator:
            stmt = stmt.where(or_(
                ChatMessage.approval_status == ApprovalStatus.APPROVED,
                ChatMessage.sender_id == viewer.id
            ))
        stmt = stmt.order_by(ChatMessage.created_at.asc()).offset(offset).limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_pending(self, actor: User, page: int = 1, size: int = 20) -> Dict[str, Any]:
        """Moderation queue, oldest first"""
        if not can_moderate(actor.role):
            raise Forbidden("Only principals and admins can review pending messages")
        return await self.get_paginated(
            page=page,
            size=size,
            sort="asc",
            approval_status=ApprovalStatus.PENDING
        )

    async def _get_message(self, message_id: UUID, refresh: bool = False) -> ChatMessage:
        stmt = select(ChatMessage).where(ChatMessage.id == message_id, ChatMessage.is_deleted.is_(False))
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        message = (await self.db.execute(stmt)).scalar_one_or_none()
        if not message:
            raise NotFoundError("Message", message_id)
        return message

    async def _notify(self, event: NotificationEvent) -> int:
        # The transition is already committed; a delivery problem must not undo it
        try:
            result = await self.notifications.publish(event)
        except Exception as e:
            logger.error(f"Publishing {event.title!r} failed: {e}")
            await self.db.rollback()
            return 0
        return result.sent

    @staticmethod
    def _participant_ids(thread: ChatThread) -> Set[UUID]:
        return {participant.user_id for participant in thread.participants}
