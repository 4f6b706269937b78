# schoolconnect/services/directory_service.py
"""Directory lookups: who is linked to which class division and student.

Every method is a fresh read-through. Class assignments and enrollments can
change between calls and nothing invalidates a cached copy, so nothing here
is memoised beyond the call.
"""
from typing import Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_

from ..core.exceptions import Forbidden, NotFoundError
from ..models.user import User, UserRole
from ..models.school import ClassDivision, Student, TeacherClassAssignment, GuardianStudentLink
from ..schemas.directory_schemas import ClassRoster
from .permissions import is_audience_universal
from .teacher_assignment_service import active_assignment_clause

logger = logging.getLogger(__name__)


def _enrolled_student_clause():
    return and_(Student.is_active.is_(True), Student.is_deleted.is_(False))


def _active_user_clause():
    return and_(User.is_active.is_(True), User.is_deleted.is_(False))


class DirectoryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: UUID) -> User:
        stmt = select(User).where(User.id == user_id, _active_user_clause())
        user = (await self.db.execute(stmt)).scalar_one_or_none()
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def get_student(self, student_id: UUID) -> Student:
        stmt = select(Student).where(Student.id == student_id, _enrolled_student_clause())
        student = (await self.db.execute(stmt)).scalar_one_or_none()
        if not student:
            raise NotFoundError("Student", student_id)
        return student

    async def resolve_teacher_classes(self, teacher_id: UUID) -> Set[UUID]:
        stmt = select(TeacherClassAssignment.class_division_id).where(
            TeacherClassAssignment.teacher_id == teacher_id,
            active_assignment_clause()
        )
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def is_active_assignment(self, teacher_id: UUID, class_division_id: UUID) -> bool:
        stmt = select(TeacherClassAssignment.id).where(
            TeacherClassAssignment.teacher_id == teacher_id,
            TeacherClassAssignment.class_division_id == class_division_id,
            active_assignment_clause()
        ).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def filter_active_assignments(self, pairs: Iterable[Tuple[UUID, UUID]]) -> Set[Tuple[UUID, UUID]]:
        """Return the (teacher_id, class_division_id) pairs that still hold an active assignment"""
        pairs = set(pairs)
        if not pairs:
            return set()
        stmt = select(TeacherClassAssignment.teacher_id, TeacherClassAssignment.class_division_id).where(
            TeacherClassAssignment.teacher_id.in_([teacher_id for teacher_id, _ in pairs]),
            TeacherClassAssignment.class_division_id.in_([division_id for _, division_id in pairs]),
            active_assignment_clause()
        )
        result = await self.db.execute(stmt)
        return pairs & {(row.teacher_id, row.class_division_id) for row in result.all()}

    async def resolve_guardian_students(self, guardian_id: UUID) -> Set[Tuple[UUID, Optional[UUID]]]:
        """(student_id, class_division_id) for every student linked to the guardian"""
        stmt = select(Student.id, Student.class_division_id).join(
            GuardianStudentLink, GuardianStudentLink.student_id == Student.id
        ).where(
            GuardianStudentLink.guardian_id == guardian_id,
            GuardianStudentLink.is_deleted.is_(False),
            _enrolled_student_clause()
        )
        result = await self.db.execute(stmt)
        return {(row.id, row.class_division_id) for row in result.all()}

    async def resolve_student_guardians(self, student_id: UUID) -> Set[UUID]:
        stmt = select(GuardianStudentLink.guardian_id).join(
            User, User.id == GuardianStudentLink.guardian_id
        ).where(
            GuardianStudentLink.student_id == student_id,
            GuardianStudentLink.is_deleted.is_(False),
            _active_user_clause()
        )
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def resolve_student_teachers(self, student_id: UUID) -> Set[UUID]:
        student = await self.get_student(student_id)
        if student.class_division_id is None:
            return set()
        return await self._active_class_teachers(student.class_division_id)

    async def resolve_class_roster(self, class_division_id: UUID) -> ClassRoster:
        """Active teachers of the class plus guardians of every enrolled student"""
        division = await self.db.get(ClassDivision, class_division_id)
        if not division or division.is_deleted:
            raise NotFoundError("Class division", class_division_id)

        teacher_ids = await self._active_class_teachers(class_division_id)

        students_stmt = select(Student.id).where(
            Student.class_division_id == class_division_id,
            _enrolled_student_clause()
        )
        student_ids = set((await self.db.execute(students_stmt)).scalars().all())

        guardian_ids: Set[UUID] = set()
        if student_ids:
            guardians_stmt = select(GuardianStudentLink.guardian_id).join(
                User, User.id == GuardianStudentLink.guardian_id
            ).where(
                GuardianStudentLink.student_id.in_(list(student_ids)),
                GuardianStudentLink.is_deleted.is_(False),
                _active_user_clause()
            )
            guardian_ids = set((await self.db.execute(guardians_stmt)).scalars().all())

        return ClassRoster(
            class_division_id=class_division_id,
            teacher_ids=sorted(teacher_ids, key=str),
            guardian_ids=sorted(guardian_ids, key=str),
            student_ids=sorted(student_ids, key=str),
        )

    async def guardians_by_student_in_class(self, class_division_id: UUID) -> List[Tuple[UUID, UUID]]:
        """(guardian_id, student_id) pairs for the class, used for per-recipient student context"""
        stmt = select(GuardianStudentLink.guardian_id, GuardianStudentLink.student_id).join(
            Student, Student.id == GuardianStudentLink.student_id
        ).join(
            User, User.id == GuardianStudentLink.guardian_id
        ).where(
            Student.class_division_id == class_division_id,
            GuardianStudentLink.is_deleted.is_(False),
            _enrolled_student_clause(),
            _active_user_clause()
        )
        result = await self.db.execute(stmt)
        return [(row.guardian_id, row.student_id) for row in result.all()]

    async def get_users_by_roles(self, roles: Iterable[UserRole]) -> Dict[UUID, UserRole]:
        roles = list(roles)
        if not roles:
            return {}
        stmt = select(User.id, User.role).where(User.role.in_(roles), _active_user_clause())
        result = await self.db.execute(stmt)
        return {row.id: row.role for row in result.all()}

    async def get_active_user_roles(self, user_ids: Iterable[UUID]) -> Dict[UUID, UserRole]:
        user_ids = set(user_ids)
        if not user_ids:
            return {}
        stmt = select(User.id, User.role).where(User.id.in_(list(user_ids)), _active_user_clause())
        result = await self.db.execute(stmt)
        return {row.id: row.role for row in result.all()}

    async def ensure_class_access(self, actor: User, class_division_id: UUID) -> None:
        """Raise Forbidden unless the actor may see the class division right now"""
        if is_audience_universal(actor.role):
            return
        if actor.role == UserRole.TEACHER:
            if await self.is_active_assignment(actor.id, class_division_id):
                return
        elif actor.role == UserRole.PARENT:
            linked = await self.resolve_guardian_students(actor.id)
            if any(division_id == class_division_id for _, division_id in linked):
                return
        logger.info(f"Denied class access: user {actor.id} ({actor.role.value}) on class {class_division_id}")
        raise Forbidden("Access denied to this class division")

    async def ensure_student_access(self, actor: User, student_id: UUID) -> None:
        """Raise Forbidden unless the actor may see the student right now"""
        if is_audience_universal(actor.role):
            return
        if actor.role == UserRole.PARENT:
            linked = await self.resolve_guardian_students(actor.id)
            if any(linked_id == student_id for linked_id, _ in linked):
                return
        elif actor.role == UserRole.TEACHER:
            student = await self.get_student(student_id)
            if student.class_division_id and await self.is_active_assignment(actor.id, student.class_division_id):
                return
        logger.info(f"Denied student access: user {actor.id} ({actor.role.value}) on student {student_id}")
        raise Forbidden("Access denied to this student")

    async def _active_class_teachers(self, class_division_id: UUID) -> Set[UUID]:
        stmt = select(TeacherClassAssignment.teacher_id).join(
            User, User.id == TeacherClassAssignment.teacher_id
        ).where(
            TeacherClassAssignment.class_division_id == class_division_id,
            active_assignment_clause(),
            _active_user_clause()
        )
        result = await self.db.execute(stmt)
        return set(result.scalars().all())
