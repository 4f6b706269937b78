# schoolconnect/services/notifications/__init__.py
from .audience import AudienceResolver, RecipientSet
from .dispatcher import NotificationDispatcher
from .push_transport import PushTransport, PushResult, FirebasePushTransport, DisabledPushTransport, get_push_transport

__all__ = [
    "AudienceResolver", "RecipientSet", "NotificationDispatcher",
    "PushTransport", "PushResult", "FirebasePushTransport", "DisabledPushTransport", "get_push_transport",
]
