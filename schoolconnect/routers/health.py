"""Health check endpoints."""
from fastapi import APIRouter, Depends
import logging

from ..core.config import settings
from ..core.database import health_check_db
from ..services.realtime import ConnectionRegistry
from .deps import get_connection_registry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])

@router.get("/")
async def health_check(registry: ConnectionRegistry = Depends(get_connection_registry)):
    """Basic health check"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "live_connections": registry.connection_count()
    }

@router.get("/db-health")
async def database_health():
    """Database connectivity check"""
    healthy = await health_check_db()
    if not healthy:
        logger.error("Database health check failed")
    return {
        "status": "healthy" if healthy else "unhealthy",
        "database": "reachable" if healthy else "unreachable"
    }
