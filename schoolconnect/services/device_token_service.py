# schoolconnect/services/device_token_service.py
from typing import List
from uuid import UUID
from datetime import datetime, timezone
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from ..core.exceptions import NotFoundError
from ..models.notification import DeviceToken, DevicePlatform
from .base_service import BaseService

logger = logging.getLogger(__name__)


class DeviceTokenService(BaseService[DeviceToken]):
    def __init__(self, db: AsyncSession):
        super().__init__(DeviceToken, db)

    async def register(self, user_id: UUID, device_token: str, platform: DevicePlatform) -> DeviceToken:
        """Keep one active token per user and platform: retire the others, then reactivate or insert this one"""
        now = datetime.now(timezone.utc)
        await self.db.execute(
            update(self.model).where(
                self.model.user_id == user_id,
                self.model.platform == platform,
                self.model.device_token != device_token,
                self.model.is_active.is_(True)
            ).values(is_active=False)
        )

        stmt = select(self.model).where(self.model.user_id == user_id, self.model.device_token == device_token)
        existing = (await self.db.execute(stmt)).scalar_one_or_none()
        if existing:
            existing.is_active = True
            existing.is_deleted = False
            existing.platform = platform
            existing.last_used_at = now
            token = existing
            logger.info(f"Reactivated existing device token for user {user_id}")
        else:
            token = DeviceToken(user_id=user_id, device_token=device_token, platform=platform, last_used_at=now)
            self.db.add(token)
            logger.info(f"Created new device token for user {user_id}")

        await self.db.commit()
        await self.db.refresh(token)
        return token

    async def unregister(self, user_id: UUID, device_token: str) -> None:
        result = await self.db.execute(
            update(self.model).where(
                self.model.user_id == user_id,
                self.model.device_token == device_token
            ).values(is_active=False)
        )
        await self.db.commit()
        if result.rowcount == 0:
            raise NotFoundError("Device token")
        logger.info(f"Device token unregistered for user {user_id}")

    async def get_active_tokens(self, user_id: UUID) -> List[DeviceToken]:
        stmt = select(self.model).where(
            self.model.user_id == user_id,
            self.model.is_active.is_(True),
            self.model.is_deleted.is_(False)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def deactivate(self, token_id: UUID) -> None:
        """Single-row update; used when the push provider reports the token as invalid"""
        await self.db.execute(update(self.model).where(self.model.id == token_id).values(is_active=False))
        await self.db.commit()
