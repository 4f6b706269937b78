from .base_service import BaseService
from .directory_service import DirectoryService
from .teacher_assignment_service import TeacherAssignmentService
from .device_token_service import DeviceTokenService
from .notification_service import NotificationService
