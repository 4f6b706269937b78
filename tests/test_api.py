"""End-to-end tests through the FastAPI application."""
import asyncio
from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool
from starlette.websockets import WebSocketDisconnect

from schoolconnect.core.database import build_session_factory, get_db
from schoolconnect.main import app
from schoolconnect.models import Base
from schoolconnect.routers.deps import get_connection_registry
from schoolconnect.services.notifications import get_push_transport
from schoolconnect.services.realtime import ConnectionRegistry

from .conftest import RecordingPushTransport, Seeder, build_school


@pytest.fixture
def api(database_url):
    # NullPool: the app runs on the TestClient's own event loop
    engine = create_async_engine(database_url, poolclass=NullPool)
    factory = build_session_factory(engine)

    async def setup():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as db:
            return await build_school(Seeder(db))

    school = asyncio.run(setup())

    async def override_get_db():
        async with factory() as session:
            yield session

    registry = ConnectionRegistry(heartbeat_interval=30, heartbeat_timeout=60)
    transport = RecordingPushTransport()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_connection_registry] = lambda: registry
    app.dependency_overrides[get_push_transport] = lambda: transport

    with TestClient(app) as client:
        yield SimpleNamespace(client=client, school=school, registry=registry, push=transport)

    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


def as_user(user):
    return {"actor_id": str(user.id)}


def open_thread(api, creator, *others):
    response = api.client.post(
        "/api/v1/chat/threads",
        params=as_user(creator),
        json={"participant_ids": [str(user.id) for user in others], "thread_type": "group"},
    )
    assert response.status_code == 201
    return response.json()


def post_message(api, thread, sender, content="Hello"):
    response = api.client.post(
        f"/api/v1/chat/threads/{thread['id']}/messages", params=as_user(sender), json={"content": content}
    )
    assert response.status_code == 201
    return response.json()


class TestHealth:

    def test_health(self, api):
        response = api.client.get("/health/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Process-Time" in response.headers


class TestModerationFlow:

    def test_teacher_message_approved_by_principal(self, api):
        school = api.school
        thread = open_thread(api, school["teacher"], school["parent"])
        message = post_message(api, thread, school["teacher"], "Asha did very well today")
        assert message["approval_status"] == "pending"

        hidden = api.client.get(f"/api/v1/chat/threads/{thread['id']}/messages", params=as_user(school["parent"]))
        assert hidden.json() == []

        approved = api.client.post(f"/api/v1/chat/messages/{message['id']}/approve", params=as_user(school["principal"]))
        assert approved.status_code == 200
        body = approved.json()
        assert body["changed"] is True
        assert body["recipients_notified"] == 2
        assert body["message"]["approval_status"] == "approved"

        visible = api.client.get(f"/api/v1/chat/threads/{thread['id']}/messages", params=as_user(school["parent"]))
        assert [m["id"] for m in visible.json()] == [message["id"]]

        notifications = api.client.get("/api/v1/notifications", params=as_user(school["parent"])).json()
        assert notifications["total"] == 1
        assert notifications["items"][0]["notification_type"] == "message_approval"

        again = api.client.post(f"/api/v1/chat/messages/{message['id']}/approve", params=as_user(school["admin"]))
        assert again.json()["changed"] is False
        assert api.client.get("/api/v1/notifications", params=as_user(school["parent"])).json()["total"] == 1

    def test_rejection_reaches_only_the_sender(self, api):
        school = api.school
        thread = open_thread(api, school["teacher"], school["parent"])
        message = post_message(api, thread, school["teacher"])

        response = api.client.post(
            f"/api/v1/chat/messages/{message['id']}/reject",
            params=as_user(school["principal"]),
            json={"rejection_reason": "inappropriate"},
        )

        assert response.status_code == 200
        assert response.json()["message"]["rejection_reason"] == "inappropriate"
        teacher_inbox = api.client.get("/api/v1/notifications", params=as_user(school["teacher"])).json()
        assert "inappropriate" in teacher_inbox["items"][0]["body"]
        assert api.client.get("/api/v1/notifications", params=as_user(school["parent"])).json()["total"] == 0

    def test_edit_after_rejection_requires_reapproval(self, api):
        school = api.school
        thread = open_thread(api, school["teacher"], school["parent"])
        message = post_message(api, thread, school["teacher"])
        api.client.post(
            f"/api/v1/chat/messages/{message['id']}/reject",
            params=as_user(school["principal"]),
            json={"rejection_reason": "Please rephrase"},
        )

        response = api.client.put(
            f"/api/v1/chat/messages/{message['id']}", params=as_user(school["teacher"]), json={"content": "Rephrased"}
        )

        assert response.status_code == 200
        assert response.json()["requires_reapproval"] is True
        assert response.json()["message"]["approval_status"] == "pending"
        assert response.json()["message"]["rejection_reason"] is None

    def test_pending_queue(self, api):
        school = api.school
        thread = open_thread(api, school["teacher"], school["parent"])
        message = post_message(api, thread, school["parent"])

        queue = api.client.get("/api/v1/chat/messages/pending", params=as_user(school["admin"]))

        assert queue.status_code == 200
        assert [m["id"] for m in queue.json()["items"]] == [message["id"]]


class TestErrors:

    def test_teacher_cannot_approve(self, api):
        school = api.school
        thread = open_thread(api, school["teacher"], school["parent"])
        message = post_message(api, thread, school["parent"])

        response = api.client.post(f"/api/v1/chat/messages/{message['id']}/approve", params=as_user(school["teacher"]))

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_unknown_actor(self, api):
        response = api.client.get("/api/v1/notifications", params={"actor_id": str(uuid4())})
        assert response.status_code == 403

    def test_missing_message(self, api):
        response = api.client.post(f"/api/v1/chat/messages/{uuid4()}/approve", params=as_user(api.school["principal"]))
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_rejecting_an_approved_message(self, api):
        school = api.school
        thread = open_thread(api, school["teacher"], school["parent"])
        message = post_message(api, thread, school["teacher"])
        api.client.post(f"/api/v1/chat/messages/{message['id']}/approve", params=as_user(school["principal"]))

        response = api.client.post(
            f"/api/v1/chat/messages/{message['id']}/reject",
            params=as_user(school["principal"]),
            json={"rejection_reason": "changed my mind"},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE"

    def test_blank_rejection_reason(self, api):
        school = api.school
        thread = open_thread(api, school["teacher"], school["parent"])
        message = post_message(api, thread, school["teacher"])

        response = api.client.post(
            f"/api/v1/chat/messages/{message['id']}/reject", params=as_user(school["principal"]), json={"rejection_reason": "   "}
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestNotificationEvents:

    def test_homework_from_assigned_teacher(self, api):
        school = api.school
        response = api.client.post(
            "/api/v1/notifications/events/homework",
            params=as_user(school["teacher"]),
            json={
                "homework_id": str(uuid4()),
                "teacher_id": str(school["teacher"].id),
                "class_division_id": str(school["class_a"].id),
                "subject": "Mathematics",
                "title": "Fractions worksheet",
            },
        )

        assert response.status_code == 200
        assert response.json()["sent"] == 3
        assert api.client.get("/api/v1/notifications/unread-count", params=as_user(school["parent"])).json()["unread_count"] == 1

    def test_homework_for_unassigned_class_is_forbidden(self, api):
        school = api.school
        response = api.client.post(
            "/api/v1/notifications/events/homework",
            params=as_user(school["teacher"]),
            json={
                "homework_id": str(uuid4()),
                "teacher_id": str(school["teacher"].id),
                "class_division_id": str(school["class_b"].id),
                "subject": "Mathematics",
                "title": "Fractions worksheet",
            },
        )
        assert response.status_code == 403

    def test_cannot_publish_as_someone_else(self, api):
        school = api.school
        response = api.client.post(
            "/api/v1/notifications/events/announcement",
            params=as_user(school["principal"]),
            json={
                "announcement_id": str(uuid4()),
                "author_id": str(school["admin"].id),
                "title": "Holiday",
                "content": "School is closed on Monday",
            },
        )
        assert response.status_code == 403

    def test_school_wide_announcement(self, api):
        school = api.school
        payload = {
            "announcement_id": str(uuid4()),
            "title": "Holiday",
            "content": "School is closed on Monday",
        }

        teacher_attempt = api.client.post(
            "/api/v1/notifications/events/announcement",
            params=as_user(school["teacher"]),
            json={**payload, "author_id": str(school["teacher"].id)},
        )
        principal_attempt = api.client.post(
            "/api/v1/notifications/events/announcement",
            params=as_user(school["principal"]),
            json={**payload, "author_id": str(school["principal"].id)},
        )

        assert teacher_attempt.status_code == 403
        assert principal_attempt.status_code == 200
        assert principal_attempt.json()["sent"] == 5

    def test_calendar_event_with_a_long_title(self, api):
        school = api.school
        response = api.client.post(
            "/api/v1/notifications/events/calendar-event",
            params=as_user(school["principal"]),
            json={
                "event_id": str(uuid4()),
                "created_by": str(school["principal"].id),
                "title": "x" * 195,
                "starts_at": "2026-11-02T10:30:00",
            },
        )

        assert response.status_code == 200
        assert response.json()["sent"] == 5
        inbox = api.client.get("/api/v1/notifications", params=as_user(school["parent"])).json()
        assert len(inbox["items"][0]["title"]) == 200

    def test_read_all(self, api):
        school = api.school
        api.client.post(
            "/api/v1/notifications/events/attendance",
            params=as_user(school["teacher"]),
            json={
                "attendance_id": str(uuid4()),
                "marked_by": str(school["teacher"].id),
                "student_id": str(school["first_child"].id),
                "student_name": "Asha Sen",
                "status": "late",
                "attendance_date": "2026-10-19T09:00:00",
            },
        )
        inbox = api.client.get("/api/v1/notifications", params=as_user(school["parent"])).json()
        assert inbox["total"] == 1

        read = api.client.post(f"/api/v1/notifications/{inbox['items'][0]['id']}/read", params=as_user(school["parent"]))
        assert read.json()["is_read"] is True
        assert api.client.post("/api/v1/notifications/read-all", params=as_user(school["parent"])).json()["updated"] == 0


class TestInbox:

    def _mark_attendance(self, api, child, status):
        school = api.school
        response = api.client.post(
            "/api/v1/notifications/events/attendance",
            params=as_user(school["teacher"]),
            json={
                "attendance_id": str(uuid4()),
                "marked_by": str(school["teacher"].id),
                "student_id": str(school[child].id),
                "student_name": school[child].full_name,
                "status": status,
                "attendance_date": "2026-10-19T09:00:00",
            },
        )
        assert response.status_code == 200

    def test_filter_by_child(self, api):
        school = api.school
        self._mark_attendance(api, "first_child", "absent")
        self._mark_attendance(api, "second_child", "present")
        parent = as_user(school["parent"])
        first_child = {"student_id": str(school["first_child"].id)}

        inbox = api.client.get("/api/v1/notifications", params={**parent, **first_child}).json()
        assert inbox["total"] == 1
        assert inbox["items"][0]["student_id"] == str(school["first_child"].id)

        read = api.client.post("/api/v1/notifications/read-all", params={**parent, **first_child})
        assert read.json()["updated"] == 1
        assert api.client.get("/api/v1/notifications/unread-count", params=parent).json()["unread_count"] == 1

        stats = api.client.get("/api/v1/notifications/stats", params=parent).json()
        assert stats == {"total": 2, "unread": 1, "by_type": {"attendance": 2}, "by_priority": {"high": 1, "low": 1}}

    def test_cleanup_is_for_moderators(self, api):
        school = api.school
        self._mark_attendance(api, "first_child", "late")

        forbidden = api.client.delete("/api/v1/notifications/cleanup", params=as_user(school["teacher"]))
        allowed = api.client.delete("/api/v1/notifications/cleanup", params={**as_user(school["admin"]), "days": 30})

        assert forbidden.status_code == 403
        assert allowed.status_code == 200
        assert allowed.json()["deleted"] == 0
        assert api.client.get("/api/v1/notifications", params=as_user(school["parent"])).json()["total"] == 1


class TestClasses:

    def test_removed_teacher_loses_roster_access(self, api):
        school = api.school
        class_id = school["class_a"].id
        roster = api.client.get(f"/api/v1/classes/{class_id}/roster", params=as_user(school["teacher"]))
        assert roster.status_code == 200
        assert roster.json()["guardian_ids"] == [str(school["parent"].id)]

        removed = api.client.delete(
            f"/api/v1/classes/{class_id}/teachers/{school['teacher'].id}", params=as_user(school["admin"])
        )
        assert removed.status_code == 200

        assert api.client.get(f"/api/v1/classes/{class_id}/roster", params=as_user(school["teacher"])).status_code == 403
        assert api.client.get(f"/api/v1/classes/{class_id}/roster", params=as_user(school["principal"])).json()["teacher_ids"] == []

    def test_assign_teacher(self, api):
        school = api.school
        response = api.client.post(
            f"/api/v1/classes/{school['class_b'].id}/teachers",
            params=as_user(school["principal"]),
            json={"teacher_id": str(school["teacher"].id), "assignment_type": "class_teacher"},
        )

        assert response.status_code == 201
        assert response.json()["is_active"] is True

    def test_teachers_cannot_manage_assignments(self, api):
        school = api.school
        response = api.client.post(
            f"/api/v1/classes/{school['class_b'].id}/teachers",
            params=as_user(school["teacher"]),
            json={"teacher_id": str(school["teacher"].id)},
        )
        assert response.status_code == 403


class TestDeviceTokens:

    def test_register_and_unregister(self, api):
        parent = api.school["parent"]
        body = {"device_token": "fcm-token-abcdef123456", "platform": "android"}

        registered = api.client.post("/api/v1/device-tokens", params=as_user(parent), json=body)
        assert registered.status_code == 201
        assert registered.json()["is_active"] is True

        removed = api.client.request("DELETE", "/api/v1/device-tokens", params=as_user(parent), json=body)
        assert removed.status_code == 200

        missing = api.client.request(
            "DELETE", "/api/v1/device-tokens", params=as_user(parent), json={"device_token": "never-registered"}
        )
        assert missing.status_code == 404


class TestWebSocket:

    def test_ping_pong(self, api):
        parent = api.school["parent"]
        with api.client.websocket_connect(f"/ws/notifications?user_id={parent.id}") as websocket:
            assert websocket.receive_json()["type"] == "connection_established"
            assert api.registry.is_user_connected(parent.id)

            websocket.send_json({"type": "ping"})
            assert websocket.receive_json()["type"] == "pong"

            websocket.send_text("not json")
            assert websocket.receive_json()["type"] == "error"

    def test_unknown_user_is_refused(self, api):
        with pytest.raises(WebSocketDisconnect):
            with api.client.websocket_connect(f"/ws/notifications?user_id={uuid4()}") as websocket:
                websocket.receive_json()

    def test_approval_is_delivered_live(self, api):
        school = api.school
        thread = open_thread(api, school["teacher"], school["parent"])
        message = post_message(api, thread, school["teacher"])

        with api.client.websocket_connect(f"/ws/notifications?user_id={school['parent'].id}") as websocket:
            websocket.receive_json()
            api.client.post(f"/api/v1/chat/messages/{message['id']}/approve", params=as_user(school["principal"]))

            notification = websocket.receive_json()

        assert notification["type"] == "notification"
        assert notification["data"]["notification_type"] == "message_approval"
        read = api.client.post(
            f"/api/v1/notifications/{notification['data']['id']}/read", params=as_user(school["parent"])
        )
        assert read.status_code == 200
        assert read.json()["is_read"] is True
