"""Tests for the Firebase push transport's error classification and message building."""
from unittest.mock import MagicMock

import pytest
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from schoolconnect.core.exceptions import TransportFailure
from schoolconnect.models import DevicePlatform
from schoolconnect.services.notifications import push_transport
from schoolconnect.services.notifications.push_transport import (
    INVALID_TOKEN, TRANSPORT_ERROR, FirebasePushTransport,
)

PAYLOAD = {
    "id": "2f6d8c1e-0b0a-4d55-9a51-6b1d2f3c4e5f",
    "notification_type": "homework",
    "priority": "high",
    "title": "New homework: Mathematics",
    "body": "Fractions worksheet",
}


def failing_send(error):
    return MagicMock(side_effect=error)


class TestSendPush:

    @pytest.mark.asyncio
    async def test_success_returns_the_message_id(self, monkeypatch):
        monkeypatch.setattr(push_transport.messaging, "send", MagicMock(return_value="projects/p/messages/1"))

        result = await FirebasePushTransport().send_push("token-1", DevicePlatform.ANDROID, PAYLOAD)

        assert result.success is True
        assert result.message_id == "projects/p/messages/1"

    @pytest.mark.asyncio
    async def test_unregistered_token(self, monkeypatch):
        monkeypatch.setattr(push_transport.messaging, "send", failing_send(
            messaging.UnregisteredError("Requested entity was not found.")
        ))

        with pytest.raises(TransportFailure) as excinfo:
            await FirebasePushTransport().send_push("token-1", DevicePlatform.ANDROID, PAYLOAD)

        assert excinfo.value.error_class == INVALID_TOKEN

    @pytest.mark.asyncio
    async def test_malformed_token_is_invalid(self, monkeypatch):
        monkeypatch.setattr(push_transport.messaging, "send", failing_send(
            firebase_exceptions.InvalidArgumentError("The registration token is not a valid FCM registration token")
        ))

        with pytest.raises(TransportFailure) as excinfo:
            await FirebasePushTransport().send_push("not-a-token", DevicePlatform.IOS, PAYLOAD)

        assert excinfo.value.error_class == INVALID_TOKEN

    @pytest.mark.asyncio
    async def test_bad_payload_keeps_the_token(self, monkeypatch):
        monkeypatch.setattr(push_transport.messaging, "send", failing_send(
            firebase_exceptions.InvalidArgumentError("Request contains an invalid argument: data payload too large")
        ))

        with pytest.raises(TransportFailure) as excinfo:
            await FirebasePushTransport().send_push("token-1", DevicePlatform.ANDROID, PAYLOAD)

        assert excinfo.value.error_class == TRANSPORT_ERROR

    @pytest.mark.asyncio
    async def test_provider_outage(self, monkeypatch):
        monkeypatch.setattr(push_transport.messaging, "send", failing_send(
            firebase_exceptions.UnavailableError("The service is currently unavailable")
        ))

        with pytest.raises(TransportFailure) as excinfo:
            await FirebasePushTransport().send_push("token-1", DevicePlatform.ANDROID, PAYLOAD)

        assert excinfo.value.error_class == TRANSPORT_ERROR


class TestBuildMessage:

    def test_android_message_is_tagged_with_the_notification_id(self):
        message = FirebasePushTransport.build_message("token-1", DevicePlatform.ANDROID, PAYLOAD)

        assert message.data["id"] == PAYLOAD["id"]
        assert message.data["type"] == "homework"
        assert message.android.notification.tag == PAYLOAD["id"]
        assert message.apns is None

    def test_ios_message_uses_apns(self):
        message = FirebasePushTransport.build_message("token-1", DevicePlatform.IOS, PAYLOAD)

        assert message.android is None
        assert message.apns.payload.aps.alert.title == "New homework: Mathematics"
