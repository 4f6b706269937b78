# schoolconnect/services/chat/__init__.py
from .chat_service import ChatService, ModerationOutcome
from . import approval

__all__ = ["ChatService", "ModerationOutcome", "approval"]
