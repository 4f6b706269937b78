# schoolconnect/models/chat/__init__.py
from .chat_thread import ChatThread, ChatParticipant, ThreadStatus, ThreadType
from .chat_message import ChatMessage, ApprovalStatus, MessageType

__all__ = [
    "ChatThread", "ChatParticipant", "ThreadStatus", "ThreadType",
    "ChatMessage", "ApprovalStatus", "MessageType",
]
