from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from ..base import Base
import enum


class DevicePlatform(enum.Enum):
    ANDROID = "android"
    IOS = "ios"


class DeviceToken(Base):
    __tablename__ = "device_tokens"

    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    device_token = Column(String(512), nullable=False)
    platform = Column(
        Enum(DevicePlatform, native_enum=False, values_callable=lambda enum_cls: [e.value for e in enum_cls]),
        default=DevicePlatform.ANDROID,
        nullable=False
    )
    # Deactivated, never deleted, when the provider reports the token as invalid
    is_active = Column(Boolean, default=True, nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'device_token', name='unique_user_device_token'),
    )
