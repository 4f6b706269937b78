# schoolconnect/models/__init__.py
"""Import all models here, needed for Alembic migration."""
from .base import Base
from .user import User, UserRole

from .school import ClassDivision, Student, TeacherClassAssignment, AssignmentType, GuardianStudentLink
from .chat import ChatThread, ChatParticipant, ChatMessage, ApprovalStatus, MessageType, ThreadStatus, ThreadType
from .notification import NotificationRecord, NotificationType, NotificationPriority, DeviceToken, DevicePlatform
