# schoolconnect/routers/deps.py
"""Shared FastAPI dependencies.

Authentication is handled upstream; the acting user arrives as ``actor_id``
and is loaded fresh on every request so deactivation takes effect at once.
"""
from uuid import UUID
from fastapi import Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.exceptions import Forbidden, NotFoundError
from ..models.user import User
from ..services.chat import ChatService
from ..services.directory_service import DirectoryService
from ..services.notification_service import NotificationService
from ..services.notifications import PushTransport, get_push_transport
from ..services.realtime import ConnectionRegistry, connection_registry


def get_connection_registry() -> ConnectionRegistry:
    return connection_registry


async def get_actor(
    actor_id: UUID = Query(..., description="Id of the acting user"),
    db: AsyncSession = Depends(get_db)
) -> User:
    try:
        return await DirectoryService(db).get_user(actor_id)
    except NotFoundError:
        raise Forbidden("Unknown or inactive user")


def get_notification_service(
    db: AsyncSession = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_connection_registry),
    push_transport: PushTransport = Depends(get_push_transport)
) -> NotificationService:
    return NotificationService(db, registry=registry, push_transport=push_transport)


def get_chat_service(
    db: AsyncSession = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service)
) -> ChatService:
    return ChatService(db, notifications=notifications)
