# schoolconnect/routers/classes.py
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import get_actor
from ..core.database import get_db
from ..core.exceptions import Forbidden
from ..models.user import User
from ..schemas.directory_schemas import ClassRoster, TeacherAssignmentCreate, TeacherAssignmentResponse
from ..services.directory_service import DirectoryService
from ..services.permissions import can_moderate
from ..services.teacher_assignment_service import TeacherAssignmentService

router = APIRouter(prefix="/api/v1/classes", tags=["Classes"])


def _ensure_can_manage(actor: User):
    if not can_moderate(actor.role):
        raise Forbidden("Only principals and admins can manage class assignments")


@router.get("/{class_division_id}/roster", response_model=ClassRoster)
async def get_class_roster(
    class_division_id: UUID,
    actor: User = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """Current teachers, students and guardians of a class division"""
    directory = DirectoryService(db)
    await directory.ensure_class_access(actor, class_division_id)
    return await directory.resolve_class_roster(class_division_id)


@router.post("/{class_division_id}/teachers", response_model=TeacherAssignmentResponse, status_code=201)
async def assign_teacher(
    class_division_id: UUID,
    assignment: TeacherAssignmentCreate,
    actor: User = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    _ensure_can_manage(actor)
    service = TeacherAssignmentService(db)
    return await service.assign(class_division_id, assignment)


@router.delete("/{class_division_id}/teachers/{teacher_id}", response_model=dict)
async def remove_teacher(
    class_division_id: UUID,
    teacher_id: UUID,
    actor: User = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """Deactivate the assignment; the teacher stops receiving the class's notifications immediately"""
    _ensure_can_manage(actor)
    service = TeacherAssignmentService(db)
    await service.deactivate(teacher_id, class_division_id)
    return {"message": "Teacher assignment deactivated"}
