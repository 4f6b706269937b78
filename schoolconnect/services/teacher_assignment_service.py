# schoolconnect/services/teacher_assignment_service.py
from typing import List, Optional
from uuid import UUID
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_

from ..core.exceptions import NotFoundError, ValidationException
from ..models.school import TeacherClassAssignment, ClassDivision
from ..models.user import User, UserRole
from ..schemas.directory_schemas import TeacherAssignmentCreate
from .base_service import BaseService

logger = logging.getLogger(__name__)


def active_assignment_clause():
    """The one definition of a grant-conferring assignment row.

    Every authorization check and audience query filters through this clause;
    no denormalized "assigned classes" view is trusted across requests.
    """
    return and_(
        TeacherClassAssignment.is_active.is_(True),
        TeacherClassAssignment.is_deleted.is_(False),
    )


class TeacherAssignmentService(BaseService[TeacherClassAssignment]):
    def __init__(self, db: AsyncSession):
        super().__init__(TeacherClassAssignment, db)

    async def get_active_by_teacher(self, teacher_id: UUID) -> List[TeacherClassAssignment]:
        query = select(self.model).where(
            self.model.teacher_id == teacher_id,
            active_assignment_clause()
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_active_by_class(self, class_division_id: UUID) -> List[TeacherClassAssignment]:
        query = select(self.model).where(
            self.model.class_division_id == class_division_id,
            active_assignment_clause()
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def assign(self, class_division_id: UUID, obj_in: TeacherAssignmentCreate) -> TeacherClassAssignment:
        """Assign a teacher to a class division, reactivating a previous row if one exists"""
        division = await self.db.get(ClassDivision, class_division_id)
        if not division or division.is_deleted:
            raise NotFoundError("Class division", class_division_id)
        teacher = await self.db.get(User, obj_in.teacher_id)
        if not teacher or teacher.role != UserRole.TEACHER or not teacher.is_active:
            raise ValidationException("Only active teachers can be assigned to a class")

        existing = await self._find(obj_in.teacher_id, class_division_id, obj_in.subject)
        if existing:
            existing.is_active = True
            existing.is_deleted = False
            existing.assignment_type = obj_in.assignment_type
            existing.is_primary = obj_in.is_primary
            await self.db.commit()
            await self.db.refresh(existing)
            logger.info(f"Reactivated assignment of teacher {obj_in.teacher_id} to class {class_division_id}")
            return existing

        obj_data = obj_in.model_dump()
        obj_data['class_division_id'] = class_division_id
        assignment = await self.create(obj_data)
        logger.info(f"Assigned teacher {obj_in.teacher_id} to class {class_division_id}")
        return assignment

    async def deactivate(self, teacher_id: UUID, class_division_id: UUID) -> int:
        """Revoke every active assignment of a teacher to a class. Takes effect for the next query."""
        stmt = update(self.model).where(
            self.model.teacher_id == teacher_id,
            self.model.class_division_id == class_division_id,
            self.model.is_active.is_(True)
        ).values(is_active=False)
        result = await self.db.execute(stmt)
        await self.db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Active assignment", f"{teacher_id}/{class_division_id}")
        logger.info(f"Deactivated {result.rowcount} assignment(s) of teacher {teacher_id} on class {class_division_id}")
        return result.rowcount

    async def _find(self, teacher_id: UUID, class_division_id: UUID, subject: Optional[str]) -> Optional[TeacherClassAssignment]:
        stmt = select(self.model).where(
            self.model.teacher_id == teacher_id,
            self.model.class_division_id == class_division_id,
            self.model.subject == subject if subject is not None else self.model.subject.is_(None)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()
