# schoolconnect/services/notifications/push_transport.py
"""Mobile push transports. Provider errors surface as TransportFailure with an error class."""
from typing import Any, Dict, Optional
from functools import lru_cache
import asyncio
import json
import logging

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin import exceptions as firebase_exceptions
from pydantic import BaseModel

from ...core.config import Settings, settings
from ...core.exceptions import TransportFailure
from ...models.notification import DevicePlatform, NotificationPriority

logger = logging.getLogger(__name__)

INVALID_TOKEN = "invalid_token"
TRANSPORT_ERROR = "transport_error"
TIMEOUT = "timeout"

PRIORITY_COLORS = {
    NotificationPriority.LOW.value: "#9E9E9E",
    NotificationPriority.NORMAL.value: "#2196F3",
    NotificationPriority.HIGH.value: "#FF9800",
    NotificationPriority.URGENT.value: "#F44336",
}


def is_token_error(error: Exception) -> bool:
    return "registration token" in str(error).lower()


class PushResult(BaseModel):
    success: bool
    error_class: Optional[str] = None
    message_id: Optional[str] = None
    detail: Optional[str] = None


class PushTransport:
    """Interface for a mobile push provider"""
    enabled = True

    async def send_push(self, token: str, platform: DevicePlatform, payload: Dict[str, Any]) -> PushResult:
        raise NotImplementedError


class DisabledPushTransport(PushTransport):
    """Used when no push credentials are configured"""
    enabled = False

    async def send_push(self, token: str, platform: DevicePlatform, payload: Dict[str, Any]) -> PushResult:
        return PushResult(success=False, error_class="disabled")


class FirebasePushTransport(PushTransport):
    """Firebase Cloud Messaging transport. The blocking SDK call runs in a worker thread."""

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self._app = app

    @classmethod
    def from_settings(cls, config: Settings) -> "FirebasePushTransport":
        if config.firebase_credentials_json:
            cred = credentials.Certificate(json.loads(config.firebase_credentials_json.strip("'").strip('"')))
            logger.info("Firebase initialized from FIREBASE_CREDENTIALS_JSON")
        else:
            cred = credentials.Certificate(config.firebase_credentials_file)
            logger.info(f"Firebase initialized from file {config.firebase_credentials_file}")
        try:
            app = firebase_admin.get_app()
        except ValueError:
            app = firebase_admin.initialize_app(cred)
        return cls(app)

    async def send_push(self, token: str, platform: DevicePlatform, payload: Dict[str, Any]) -> PushResult:
        message = self.build_message(token, platform, payload)
        try:
            message_id = await asyncio.to_thread(messaging.send, message, app=self._app)
            return PushResult(success=True, message_id=message_id)
        except (messaging.UnregisteredError, messaging.SenderIdMismatchError) as e:
            raise TransportFailure(f"FCM rejected token: {e}", error_class=INVALID_TOKEN) from e
        except firebase_exceptions.InvalidArgumentError as e:
            # INVALID_ARGUMENT also covers malformed payloads; only a bad token retires the device
            if is_token_error(e):
                raise TransportFailure(f"FCM rejected token: {e}", error_class=INVALID_TOKEN) from e
            raise TransportFailure(f"FCM rejected message: {e}", error_class=TRANSPORT_ERROR) from e
        except firebase_exceptions.FirebaseError as e:
            raise TransportFailure(f"FCM send failed: {e}", error_class=TRANSPORT_ERROR) from e

    @staticmethod
    def build_message(token: str, platform: DevicePlatform, payload: Dict[str, Any]) -> messaging.Message:
        title = payload.get("title", "")
        body = payload.get("body", "")
        priority = payload.get("priority", NotificationPriority.NORMAL.value)
        # FCM data values must be strings
        data = {
            "type": str(payload.get("notification_type", "notification")),
            "id": str(payload.get("id") or ""),
            "student_id": str(payload.get("student_id") or ""),
            "priority": str(priority),
            "related_id": str(payload.get("related_id") or ""),
            "created_at": str(payload.get("created_at") or ""),
        }
        android = None
        apns = None
        if platform == DevicePlatform.ANDROID:
            android = messaging.AndroidConfig(
                priority="high",
                notification=messaging.AndroidNotification(
                    icon="ic_notification",
                    color=PRIORITY_COLORS.get(priority, PRIORITY_COLORS[NotificationPriority.NORMAL.value]),
                    sound="default",
                    channel_id="school_notifications",
                    click_action="FLUTTER_NOTIFICATION_CLICK",
                    tag=data["id"] or None,
                ),
            )
        else:
            apns = messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        alert=messaging.ApsAlert(title=title, body=body),
                        sound="default",
                        badge=1,
                        category="SCHOOL_NOTIFICATION",
                        content_available=True,
                        mutable_content=True,
                    )
                )
            )
        return messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body),
            data=data,
            android=android,
            apns=apns,
        )


def build_push_transport(config: Settings) -> PushTransport:
    if not config.push_enabled:
        return DisabledPushTransport()
    if not (config.firebase_credentials_json or config.firebase_credentials_file):
        logger.warning("Push enabled but no Firebase credentials configured; push delivery disabled")
        return DisabledPushTransport()
    try:
        return FirebasePushTransport.from_settings(config)
    except (ValueError, OSError) as e:
        logger.error(f"Firebase initialization failed: {e}; push delivery disabled")
        return DisabledPushTransport()


@lru_cache()
def get_push_transport() -> PushTransport:
    """Process-wide transport, built on first use"""
    return build_push_transport(settings)
