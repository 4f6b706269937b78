# schoolconnect/schemas/directory_schemas.py
from typing import List, Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.school import AssignmentType


class ClassRoster(BaseModel):
    class_division_id: UUID
    teacher_ids: List[UUID] = Field(default_factory=list)
    guardian_ids: List[UUID] = Field(default_factory=list)
    student_ids: List[UUID] = Field(default_factory=list)


class TeacherAssignmentCreate(BaseModel):
    teacher_id: UUID
    assignment_type: AssignmentType = AssignmentType.SUBJECT_TEACHER
    subject: Optional[str] = Field(default=None, max_length=100)
    is_primary: bool = False


class TeacherAssignmentResponse(BaseModel):
    id: UUID
    teacher_id: UUID
    class_division_id: UUID
    assignment_type: AssignmentType
    subject: Optional[str] = None
    is_active: bool
    is_primary: bool
    created_at: datetime

    class Config:
        from_attributes = True
