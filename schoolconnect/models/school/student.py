from sqlalchemy import Column, String, Boolean, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from ..base import Base

class Student(Base):
    __tablename__ = "students"

    full_name = Column(String(200), nullable=False)
    admission_number = Column(String(50), unique=True, nullable=True)
    # Current enrollment
    class_division_id = Column(UUID(as_uuid=True), ForeignKey("class_divisions.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
