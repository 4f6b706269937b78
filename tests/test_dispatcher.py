"""Tests for per-recipient fan-out over live, push and persisted delivery."""
import time

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from schoolconnect.core.exceptions import TransportFailure
from schoolconnect.models import DeviceToken, NotificationRecord, NotificationType, NotificationPriority
from schoolconnect.schemas.notification_schemas import AudienceReason, NotificationPayload, RecipientContext
from schoolconnect.services.notifications import DisabledPushTransport, NotificationDispatcher, RecipientSet
from schoolconnect.services.notifications.push_transport import INVALID_TOKEN, TRANSPORT_ERROR

from .conftest import FakeWebSocket, RecordingPushTransport


@pytest.fixture
def payload():
    return NotificationPayload(
        notification_type=NotificationType.HOMEWORK,
        priority=NotificationPriority.HIGH,
        title="New homework: Mathematics",
        body="Fractions worksheet",
        data={"subject": "Mathematics"},
    )


@pytest.fixture
def recipients(school):
    recipient_set = RecipientSet()
    for key, reason in (("parent", AudienceReason.CLASS), ("teacher", AudienceReason.CLASS), ("principal", AudienceReason.OVERSIGHT)):
        user = school[key]
        recipient_set.add(RecipientContext(user_id=user.id, role=user.role, reason=reason))
    return recipient_set


async def stored_records(db):
    return list((await db.execute(select(NotificationRecord))).scalars().all())


class TestDispatch:

    @pytest.mark.asyncio
    async def test_persists_one_record_per_recipient(self, db, registry, push_transport, recipients, payload, school):
        result = await NotificationDispatcher(db, registry, push_transport).dispatch(recipients, payload)

        assert (result.sent, result.failed, result.failures) == (3, 0, [])
        records = await stored_records(db)
        assert {record.user_id for record in records} == recipients.user_ids()
        parent_record = next(record for record in records if record.user_id == school["parent"].id)
        assert parent_record.notification_type == NotificationType.HOMEWORK
        assert parent_record.priority == NotificationPriority.HIGH
        assert parent_record.data == {"subject": "Mathematics", "reason": "class"}
        assert parent_record.is_read is False

    @pytest.mark.asyncio
    async def test_live_delivery_to_every_connection(self, db, registry, push_transport, recipients, payload, school):
        phone, tablet = FakeWebSocket(), FakeWebSocket()
        await registry.register(school["parent"].id, phone)
        await registry.register(school["parent"].id, tablet)

        await NotificationDispatcher(db, registry, push_transport).dispatch(recipients, payload)

        for socket in (phone, tablet):
            [message] = socket.sent
            assert message["type"] == "notification"
            assert message["data"]["title"] == "New homework: Mathematics"
            assert message["data"]["reason"] == "class"

    @pytest.mark.asyncio
    async def test_live_and_push_carry_the_stored_record_id(self, db, seed, registry, push_transport, recipients, payload, school):
        socket = FakeWebSocket()
        await registry.register(school["parent"].id, socket)
        await seed.device_token(school["parent"], "parent-android-token")

        await NotificationDispatcher(db, registry, push_transport).dispatch(recipients, payload)

        [stored] = [record for record in await stored_records(db) if record.user_id == school["parent"].id]
        [live] = socket.sent
        [(_, pushed)] = push_transport.calls
        assert live["data"]["id"] == str(stored.id)
        assert pushed["id"] == str(stored.id)

    @pytest.mark.asyncio
    async def test_broken_live_connection_does_not_fail_the_recipient(self, db, registry, push_transport, recipients, payload, school):
        await registry.register(school["teacher"].id, FakeWebSocket(fail=True))

        result = await NotificationDispatcher(db, registry, push_transport).dispatch(recipients, payload)

        assert result.sent == 3
        assert not registry.is_user_connected(school["teacher"].id)

    @pytest.mark.asyncio
    async def test_push_goes_to_every_active_token(self, db, seed, registry, push_transport, recipients, payload, school):
        await seed.device_token(school["parent"], "parent-android-token")
        await seed.device_token(school["teacher"], "teacher-android-token")

        await NotificationDispatcher(db, registry, push_transport).dispatch(recipients, payload)

        assert sorted(token for token, _ in push_transport.calls) == ["parent-android-token", "teacher-android-token"]

    @pytest.mark.asyncio
    async def test_push_failure_still_counts_as_sent(self, db, seed, registry, recipients, payload, school):
        await seed.device_token(school["parent"], "flaky-token")
        transport = RecordingPushTransport({"flaky-token": TransportFailure("FCM unavailable", error_class=TRANSPORT_ERROR)})

        result = await NotificationDispatcher(db, registry, transport).dispatch(recipients, payload)

        assert (result.sent, result.failed) == (3, 0)
        assert len(await stored_records(db)) == 3

    @pytest.mark.asyncio
    async def test_unexpected_push_error_still_counts_as_sent(self, db, seed, registry, recipients, payload, school):
        await seed.device_token(school["teacher"], "crashing-token")
        transport = RecordingPushTransport({"crashing-token": RuntimeError("connection reset")})

        result = await NotificationDispatcher(db, registry, transport).dispatch(recipients, payload)

        assert (result.sent, result.failed) == (3, 0)

    @pytest.mark.asyncio
    async def test_invalid_token_is_deactivated(self, db, seed, registry, recipients, payload, school):
        stale = await seed.device_token(school["parent"], "stale-ios-token")
        fresh = await seed.device_token(school["parent"], "fresh-ios-token")
        transport = RecordingPushTransport({"stale-ios-token": TransportFailure("unregistered", error_class=INVALID_TOKEN)})

        result = await NotificationDispatcher(db, registry, transport).dispatch(recipients, payload)

        assert result.sent == 3
        tokens = {
            token.id: token.is_active
            for token in (await db.execute(
                select(DeviceToken).execution_options(populate_existing=True)
            )).scalars().all()
        }
        assert tokens == {stale.id: False, fresh.id: True}

    @pytest.mark.asyncio
    async def test_push_timeout_moves_on_to_persistence(self, db, seed, registry, recipients, payload, school):
        await seed.device_token(school["principal"], "slow-token")
        transport = RecordingPushTransport({"slow-token": "hang"})

        started = time.monotonic()
        result = await NotificationDispatcher(db, registry, transport, push_timeout=0.05).dispatch(recipients, payload)

        assert time.monotonic() - started < 5
        assert (result.sent, result.failed) == (3, 0)

    @pytest.mark.asyncio
    async def test_disabled_push_is_skipped(self, db, seed, registry, recipients, payload, school):
        await seed.device_token(school["parent"], "parent-android-token")

        result = await NotificationDispatcher(db, registry, DisabledPushTransport()).dispatch(recipients, payload)

        assert result.sent == 3

    @pytest.mark.asyncio
    async def test_persistence_failure_is_isolated(self, db, registry, push_transport, recipients, payload, monkeypatch):
        real_commit = db.commit
        commits = []

        async def flaky_commit():
            commits.append(1)
            if len(commits) == 2:
                raise OperationalError("INSERT INTO notification_records", {}, Exception("disk I/O error"))
            await real_commit()

        monkeypatch.setattr(db, "commit", flaky_commit)
        second = list(recipients)[1]

        result = await NotificationDispatcher(db, registry, push_transport).dispatch(recipients, payload)

        assert (result.sent, result.failed) == (2, 1)
        [failure] = result.failures
        assert failure.user_id == second.user_id
        assert failure.reason.startswith("persistence_failed")
        monkeypatch.undo()
        assert second.user_id not in {record.user_id for record in await stored_records(db)}

    @pytest.mark.asyncio
    async def test_empty_audience(self, db, registry, push_transport, payload):
        result = await NotificationDispatcher(db, registry, push_transport).dispatch(RecipientSet(), payload)

        assert (result.sent, result.failed) == (0, 0)
