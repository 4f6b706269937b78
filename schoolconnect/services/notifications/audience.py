# schoolconnect/services/notifications/audience.py
"""Audience resolution: NotificationEvent target -> deduplicated RecipientSet."""
from typing import Dict, Iterator, List, Optional, Set, Tuple
from uuid import UUID
import logging
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.exceptions import ErrorCode
from ...models.user import UserRole
from ...schemas.notification_schemas import (
    AudienceReason, NotificationEvent, NotificationTarget, RecipientContext, TargetKind
)
from ..directory_service import DirectoryService
from ..permissions import universal_roles

logger = logging.getLogger(__name__)

SCHOOL_WIDE_ROLES = [UserRole.TEACHER, UserRole.PARENT, UserRole.PRINCIPAL, UserRole.ADMIN]


class RecipientSet:
    """Recipients keyed by user id. A user reached by several paths keeps the highest-ranked context."""

    def __init__(self):
        self._recipients: Dict[UUID, RecipientContext] = {}

    def add(self, context: RecipientContext) -> bool:
        current = self._recipients.get(context.user_id)
        if current is None or context.reason.rank > current.reason.rank:
            self._recipients[context.user_id] = context
            return True
        return False

    def discard(self, user_id: UUID) -> Optional[RecipientContext]:
        return self._recipients.pop(user_id, None)

    def get(self, user_id: UUID) -> Optional[RecipientContext]:
        return self._recipients.get(user_id)

    def user_ids(self) -> Set[UUID]:
        return set(self._recipients)

    def __contains__(self, user_id: UUID) -> bool:
        return user_id in self._recipients

    def __len__(self) -> int:
        return len(self._recipients)

    def __iter__(self) -> Iterator[RecipientContext]:
        return iter(list(self._recipients.values()))

    def __repr__(self) -> str:
        return f"RecipientSet({len(self)} recipients)"


class AudienceResolver:
    def __init__(self, db: AsyncSession, directory: Optional[DirectoryService] = None):
        self.db = db
        self.directory = directory or DirectoryService(db)

    async def resolve(self, event: NotificationEvent) -> RecipientSet:
        return await self.resolve_target(event.target)

    async def resolve_target(self, target: NotificationTarget) -> RecipientSet:
        recipients = RecipientSet()
        # teacher_id -> class divisions through which the teacher was reached
        teacher_paths: Dict[UUID, Set[UUID]] = {}

        if target.kind == TargetKind.SCHOOL_WIDE:
            await self._add_roles(recipients, SCHOOL_WIDE_ROLES)
        elif target.kind == TargetKind.ROLES:
            await self._add_roles(recipients, target.roles)
        elif target.kind == TargetKind.CLASS_DIVISIONS:
            for class_division_id in dict.fromkeys(target.class_division_ids):
                await self._add_class(recipients, teacher_paths, class_division_id)
        elif target.kind == TargetKind.STUDENT:
            await self._add_student(recipients, teacher_paths, target.student_id)
        elif target.kind == TargetKind.USERS:
            roles = await self.directory.get_active_user_roles(target.user_ids)
            for user_id, role in roles.items():
                recipients.add(RecipientContext(user_id=user_id, role=role, reason=AudienceReason.DIRECT))

        if target.kind != TargetKind.USERS:
            await self._add_oversight(recipients)

        for user_id in target.exclude_user_ids:
            recipients.discard(user_id)

        await self._drop_stale(recipients, teacher_paths)

        logger.info(f"Resolved {target.kind.value} audience: {len(recipients)} recipients")
        return recipients

    async def _add_roles(self, recipients: RecipientSet, roles: List[UserRole]):
        users = await self.directory.get_users_by_roles(roles)
        for user_id, role in users.items():
            recipients.add(RecipientContext(user_id=user_id, role=role, reason=AudienceReason.ROLE))

    async def _add_oversight(self, recipients: RecipientSet):
        users = await self.directory.get_users_by_roles(universal_roles())
        for user_id, role in users.items():
            recipients.add(RecipientContext(user_id=user_id, role=role, reason=AudienceReason.OVERSIGHT))

    async def _add_class(self, recipients: RecipientSet, teacher_paths: Dict[UUID, Set[UUID]], class_division_id: UUID):
        roster = await self.directory.resolve_class_roster(class_division_id)
        for teacher_id in roster.teacher_ids:
            teacher_paths.setdefault(teacher_id, set()).add(class_division_id)
            recipients.add(RecipientContext(
                user_id=teacher_id,
                role=UserRole.TEACHER,
                reason=AudienceReason.CLASS,
                class_division_id=class_division_id,
            ))
        for guardian_id, student_id in await self.directory.guardians_by_student_in_class(class_division_id):
            recipients.add(RecipientContext(
                user_id=guardian_id,
                role=UserRole.PARENT,
                reason=AudienceReason.CLASS,
                student_id=student_id,
                class_division_id=class_division_id,
            ))

    async def _add_student(self, recipients: RecipientSet, teacher_paths: Dict[UUID, Set[UUID]], student_id: UUID):
        student = await self.directory.get_student(student_id)
        for guardian_id in await self.directory.resolve_student_guardians(student_id):
            recipients.add(RecipientContext(
                user_id=guardian_id,
                role=UserRole.PARENT,
                reason=AudienceReason.STUDENT,
                student_id=student_id,
                class_division_id=student.class_division_id,
            ))
        for teacher_id in await self.directory.resolve_student_teachers(student_id):
            teacher_paths.setdefault(teacher_id, set()).add(student.class_division_id)
            recipients.add(RecipientContext(
                user_id=teacher_id,
                role=UserRole.TEACHER,
                reason=AudienceReason.STUDENT,
                student_id=student_id,
                class_division_id=student.class_division_id,
            ))

    async def _drop_stale(self, recipients: RecipientSet, teacher_paths: Dict[UUID, Set[UUID]]):
        """Re-check grants right before returning; revoked paths are dropped, not raised"""
        pairs: Set[Tuple[UUID, UUID]] = {
            (teacher_id, division_id)
            for teacher_id, divisions in teacher_paths.items()
            for division_id in divisions
            if teacher_id in recipients
        }
        still_active = await self.directory.filter_active_assignments(pairs)
        for teacher_id in {teacher_id for teacher_id, _ in pairs}:
            if not any(pair[0] == teacher_id for pair in still_active):
                recipients.discard(teacher_id)
                logger.info(f"{ErrorCode.STALE_AUTHORIZATION.value}: dropped teacher {teacher_id}, assignment revoked")

        current_roles = await self.directory.get_active_user_roles(recipients.user_ids())
        for context in recipients:
            role = current_roles.get(context.user_id)
            if role is None:
                recipients.discard(context.user_id)
                logger.info(f"{ErrorCode.STALE_AUTHORIZATION.value}: dropped inactive user {context.user_id}")
            elif role != context.role:
                recipients.discard(context.user_id)
                recipients.add(context.model_copy(update={"role": role}))
