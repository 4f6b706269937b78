from sqlalchemy import Column, String, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from ..base import Base

class GuardianStudentLink(Base):
    __tablename__ = "guardian_student_links"

    guardian_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    relationship = Column(String(30), nullable=False, default="parent")  # father, mother, guardian
    is_primary_guardian = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint('guardian_id', 'student_id', name='unique_guardian_student'),
    )
