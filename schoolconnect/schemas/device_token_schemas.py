# schoolconnect/schemas/device_token_schemas.py
from typing import Optional
from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, Field

from ..models.notification import DevicePlatform


class DeviceTokenRegister(BaseModel):
    device_token: str = Field(..., min_length=10, max_length=512)
    platform: DevicePlatform = DevicePlatform.ANDROID


class DeviceTokenUnregister(BaseModel):
    device_token: str = Field(..., min_length=1, max_length=512)


class DeviceTokenResponse(BaseModel):
    id: UUID
    user_id: UUID
    platform: DevicePlatform
    is_active: bool
    last_used_at: Optional[datetime] = None

    class Config:
        from_attributes = True
