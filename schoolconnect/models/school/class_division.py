from sqlalchemy import Column, String, UniqueConstraint
from ..base import Base

class ClassDivision(Base):
    __tablename__ = "class_divisions"

    name = Column(String(50), nullable=False)  # e.g. "Grade 5 A"
    academic_year = Column(String(10), nullable=False)

    __table_args__ = (
        UniqueConstraint('name', 'academic_year', name='unique_class_division_per_year'),
    )
