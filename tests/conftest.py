"""Shared fixtures: a throwaway SQLite database per test plus in-memory transports."""
import asyncio
from typing import Dict, List, Optional, Union

import pytest
import pytest_asyncio

from schoolconnect.core.database import build_engine, build_session_factory
from schoolconnect.models import (
    Base, User, UserRole, ClassDivision, Student, TeacherClassAssignment, AssignmentType,
    GuardianStudentLink, DeviceToken, DevicePlatform,
)
from schoolconnect.services.notifications.push_transport import PushResult, PushTransport
from schoolconnect.services.realtime import ConnectionRegistry


class FakeWebSocket:
    """Stands in for a Starlette WebSocket inside the connection registry"""

    def __init__(self, fail: bool = False):
        self.sent: List[dict] = []
        self.closed_with: Optional[int] = None
        self.fail = fail

    async def send_json(self, data: dict):
        if self.fail:
            raise RuntimeError("socket is closed")
        self.sent.append(data)

    async def close(self, code: int = 1000):
        self.closed_with = code


class RecordingPushTransport(PushTransport):
    """Records every push. Per-token outcomes: an exception to raise, "hang", or a PushResult."""

    def __init__(self, outcomes: Optional[Dict[str, Union[Exception, str, PushResult]]] = None):
        self.outcomes = outcomes or {}
        self.calls: List[tuple] = []

    async def send_push(self, token, platform, payload):
        self.calls.append((token, payload))
        outcome = self.outcomes.get(token)
        if isinstance(outcome, Exception):
            raise outcome
        if outcome == "hang":
            await asyncio.sleep(30)
        if isinstance(outcome, PushResult):
            return outcome
        return PushResult(success=True, message_id=f"projects/test/messages/{len(self.calls)}")


class Seeder:
    """Creates directory rows and commits them"""

    def __init__(self, db):
        self.db = db
        self._counter = 0

    async def _save(self, obj):
        self.db.add(obj)
        await self.db.commit()
        await self.db.refresh(obj)
        return obj

    async def user(self, role: UserRole, name: Optional[str] = None, is_active: bool = True) -> User:
        self._counter += 1
        name = name or f"{role.value.title()} {self._counter}"
        return await self._save(User(
            full_name=name,
            email=f"{role.value}{self._counter}@school.test",
            role=role,
            is_active=is_active,
        ))

    async def class_division(self, name: str = "Grade 5 A", academic_year: str = "2026-27") -> ClassDivision:
        return await self._save(ClassDivision(name=name, academic_year=academic_year))

    async def student(self, class_division: Optional[ClassDivision], name: Optional[str] = None) -> Student:
        self._counter += 1
        return await self._save(Student(
            full_name=name or f"Student {self._counter}",
            admission_number=f"ADM{self._counter:04d}",
            class_division_id=class_division.id if class_division else None,
        ))

    async def guardian_of(self, guardian: User, student: Student, relationship: str = "mother") -> GuardianStudentLink:
        return await self._save(GuardianStudentLink(
            guardian_id=guardian.id,
            student_id=student.id,
            relationship=relationship,
        ))

    async def assign(
        self,
        teacher: User,
        class_division: ClassDivision,
        subject: Optional[str] = "Mathematics",
        is_active: bool = True
    ) -> TeacherClassAssignment:
        return await self._save(TeacherClassAssignment(
            teacher_id=teacher.id,
            class_division_id=class_division.id,
            assignment_type=AssignmentType.SUBJECT_TEACHER,
            subject=subject,
            is_active=is_active,
        ))

    async def device_token(self, user: User, token: str, platform: DevicePlatform = DevicePlatform.ANDROID) -> DeviceToken:
        return await self._save(DeviceToken(user_id=user.id, device_token=token, platform=platform))


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'schoolconnect.db'}"


@pytest_asyncio.fixture
async def engine(database_url):
    engine = build_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed(db):
    return Seeder(db)


@pytest.fixture
def registry():
    return ConnectionRegistry(heartbeat_interval=30, heartbeat_timeout=60)


@pytest.fixture
def push_transport():
    return RecordingPushTransport()


async def build_school(seed: Seeder) -> Dict[str, object]:
    """A small school: two classes, two siblings sharing a guardian, one teacher per class, staff"""
    class_a = await seed.class_division("Grade 5 A")
    class_b = await seed.class_division("Grade 5 B")
    principal = await seed.user(UserRole.PRINCIPAL, "Principal Rao")
    admin = await seed.user(UserRole.ADMIN, "Office Admin")
    teacher = await seed.user(UserRole.TEACHER, "Teacher Iyer")
    other_teacher = await seed.user(UserRole.TEACHER, "Teacher Das")
    parent = await seed.user(UserRole.PARENT, "Parent Sen")
    other_parent = await seed.user(UserRole.PARENT, "Parent Bose")
    first_child = await seed.student(class_a, "Asha Sen")
    second_child = await seed.student(class_a, "Ravi Sen")
    other_child = await seed.student(class_b, "Mira Bose")
    await seed.guardian_of(parent, first_child)
    await seed.guardian_of(parent, second_child)
    await seed.guardian_of(other_parent, other_child)
    await seed.assign(teacher, class_a)
    await seed.assign(other_teacher, class_b)
    return {
        "class_a": class_a,
        "class_b": class_b,
        "principal": principal,
        "admin": admin,
        "teacher": teacher,
        "other_teacher": other_teacher,
        "parent": parent,
        "other_parent": other_parent,
        "first_child": first_child,
        "second_child": second_child,
        "other_child": other_child,
    }


@pytest_asyncio.fixture
async def school(seed):
    return await build_school(seed)
