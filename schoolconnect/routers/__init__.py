from . import health, notifications, device_tokens, classes
from .chat import chat_router, websocket_router

__all__ = [
    "health",
    "notifications",
    "device_tokens",
    "classes",
    "chat_router",
    "websocket_router"
]
