# schoolconnect/services/realtime/__init__.py
from .connection_registry import ConnectionRegistry, Connection
from ...core.config import settings

# Process-scoped registry; started and shut down by the application lifespan
connection_registry = ConnectionRegistry(
    heartbeat_interval=settings.heartbeat_interval_seconds,
    heartbeat_timeout=settings.heartbeat_timeout_seconds,
)

__all__ = ["ConnectionRegistry", "Connection", "connection_registry"]
