# schoolconnect/routers/device_tokens.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .deps import get_actor
from ..core.database import get_db
from ..models.user import User
from ..schemas.device_token_schemas import DeviceTokenRegister, DeviceTokenUnregister, DeviceTokenResponse
from ..services.device_token_service import DeviceTokenService

router = APIRouter(prefix="/api/v1/device-tokens", tags=["Device Tokens"])


@router.post("", response_model=DeviceTokenResponse, status_code=201)
async def register_device_token(
    request: DeviceTokenRegister,
    actor: User = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """Register the acting user's push token; older tokens on the same platform are retired"""
    service = DeviceTokenService(db)
    return await service.register(actor.id, request.device_token, request.platform)


@router.delete("", response_model=dict)
async def unregister_device_token(
    request: DeviceTokenUnregister,
    actor: User = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    service = DeviceTokenService(db)
    await service.unregister(actor.id, request.device_token)
    return {"message": "Device token unregistered"}
