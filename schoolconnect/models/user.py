from sqlalchemy import Column, String, Boolean, Enum
from .base import Base
import enum


class UserRole(enum.Enum):
    TEACHER = "teacher"
    PARENT = "parent"
    PRINCIPAL = "principal"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    full_name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=True)
    role = Column(
        Enum(
            UserRole,
            native_enum=False,
            values_callable=lambda enum_cls: [e.value for e in enum_cls]
        ),
        nullable=False,
        index=True
    )
    is_active = Column(Boolean, default=True, nullable=False)
