# schoolconnect/routers/chat/websocket_router.py
from uuid import UUID
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import json
import logging
import time

from ..deps import get_connection_registry
from ...core.database import get_db
from ...core.exceptions import NotFoundError
from ...services.directory_service import DirectoryService
from ...services.realtime import ConnectionRegistry

logger = logging.getLogger(__name__)
router = APIRouter()

POLICY_VIOLATION_CLOSE_CODE = 1008


@router.websocket("/ws/notifications")
async def notifications_websocket(
    websocket: WebSocket,
    user_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
    registry: ConnectionRegistry = Depends(get_connection_registry)
):
    """Live notification channel. Clients answer heartbeats and may ping at any time."""
    try:
        await DirectoryService(db).get_user(user_id)
    except NotFoundError:
        logger.warning(f"Rejected WebSocket for unknown or inactive user {user_id}")
        await websocket.close(code=POLICY_VIOLATION_CLOSE_CODE)
        return
    # Nothing else is read through this session while the socket is open
    await db.close()

    await websocket.accept()
    conn = await registry.register(user_id, websocket)
    await websocket.send_json({
        "type": "connection_established",
        "user_id": str(user_id),
        "heartbeat_interval": registry.heartbeat_interval,
    })

    try:
        while True:
            data = await websocket.receive_text()
            registry.mark_alive(conn)
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            message_type = message.get("type") if isinstance(message, dict) else None
            if message_type == "ping":
                await websocket.send_json({"type": "pong", "timestamp": time.time()})
            elif message_type == "heartbeat_response":
                continue
            else:
                await websocket.send_json({"type": "error", "message": f"Unknown message type: {message_type}"})
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {user_id}")
    finally:
        await registry.unregister(conn)
