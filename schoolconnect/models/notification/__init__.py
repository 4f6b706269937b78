from .notification_record import NotificationRecord, NotificationType, NotificationPriority
from .device_token import DeviceToken, DevicePlatform

__all__ = ["NotificationRecord", "NotificationType", "NotificationPriority", "DeviceToken", "DevicePlatform"]
