from sqlalchemy import Column, String, ForeignKey, Boolean, Enum, Index
from sqlalchemy.dialects.postgresql import UUID
from ..base import Base
import enum


class AssignmentType(enum.Enum):
    CLASS_TEACHER = "class_teacher"
    SUBJECT_TEACHER = "subject_teacher"
    ASSISTANT_TEACHER = "assistant_teacher"


class TeacherClassAssignment(Base):
    __tablename__ = "teacher_class_assignments"

    teacher_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    class_division_id = Column(UUID(as_uuid=True), ForeignKey("class_divisions.id"), nullable=False, index=True)

    assignment_type = Column(
        Enum(
            AssignmentType,
            native_enum=False,
            values_callable=lambda enum_cls: [e.value for e in enum_cls]
        ),
        default=AssignmentType.SUBJECT_TEACHER,
        nullable=False
    )
    subject = Column(String(100), nullable=True)
    # Only active rows grant access
    is_active = Column(Boolean, default=True, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index('idx_assignment_class_active', 'class_division_id', 'is_active'),
        Index('idx_assignment_teacher_active', 'teacher_id', 'is_active'),
    )
