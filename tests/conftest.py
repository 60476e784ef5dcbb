"""
Pytest configuration and shared fixtures.

Tests run against a throwaway SQLite file per test. Settings are pinned
through the environment before any app module is imported.
"""

import asyncio
import os
import tempfile
import uuid
from dataclasses import dataclass

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="tasket-uploads-"))
os.environ["STORAGE_BACKEND"] = "local"
os.environ["TRASH_SWEEP_ENABLED"] = "false"

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.permissions import Actor, Roles
from app.db.base import Base
from app.models import Department, Employee, Task
from app.storage.attachment_store import AttachmentStore
from app.storage.backends import LocalAttachmentBackend, R2AttachmentBackend


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests, no external deps")
    config.addinivalue_line("markers", "db: requires database")
    config.addinivalue_line("markers", "server: requires running HTTP server")


def pytest_collection_modifyitems(config, items):
    run_db = os.environ.get("RUN_DB_TESTS") == "1"
    run_server = os.environ.get("RUN_SERVER_TESTS") == "1"

    skip_db = pytest.mark.skip(reason="db tests skipped by default; set RUN_DB_TESTS=1 to enable")
    skip_server = pytest.mark.skip(reason="server tests skipped by default; set RUN_SERVER_TESTS=1 to enable")

    for item in items:
        if "db" in item.keywords and not run_db:
            item.add_marker(skip_db)
        if "server" in item.keywords and not run_server:
            item.add_marker(skip_server)


@dataclass
class Staff:
    """Seeded directory: one admin and two regular employees."""

    department_id: uuid.UUID
    admin: Actor
    alice: Actor
    bob: Actor


@pytest.fixture
def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_schema())
    yield async_sessionmaker(engine, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture
def staff(session_factory) -> Staff:
    async def seed():
        async with session_factory() as session:
            department = Department(id=uuid.uuid4(), name="Operations")
            session.add(department)
            await session.flush()

            people = {}
            for key, role in (("admin", Roles.ADMIN), ("alice", Roles.EMPLOYEE), ("bob", Roles.EMPLOYEE)):
                employee = Employee(
                    id=uuid.uuid4(),
                    name=key.title(),
                    email=f"{key}@example.com",
                    role=role,
                    department_id=department.id,
                    is_active=True,
                )
                session.add(employee)
                people[key] = Actor(id=employee.id, role=role, department_id=department.id)
            await session.commit()
            return Staff(department_id=department.id, **people)

    return asyncio.run(seed())


@pytest.fixture
def uploads_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def store(uploads_dir) -> AttachmentStore:
    local = LocalAttachmentBackend(str(uploads_dir), "/uploads/")
    r2 = R2AttachmentBackend(bucket_name=None, access_key_id=None, secret_access_key=None)
    return AttachmentStore(upload_backend=local, backends=[local, r2], delete_timeout_seconds=2.0)


class RecordingPublisher:
    """Collects published events in memory."""

    def __init__(self):
        self.events = []
        self.recipients = []

    async def publish(self, event_kind, payload, recipients=None):
        self.events.append((event_kind, payload))
        self.recipients.append(recipients)

    def kinds(self):
        return [kind for kind, _ in self.events]


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def make_task(session_factory, staff):
    """Insert a task row directly and return its id."""

    def _make(created_by=None, **values):
        async def insert():
            async with session_factory() as session:
                task = Task(
                    id=uuid.uuid4(),
                    title=values.pop("title", "Quarterly report"),
                    created_by=created_by or staff.alice.id,
                    department_id=staff.department_id,
                    status=values.pop("status", "planned"),
                    priority=values.pop("priority", "medium"),
                    **values,
                )
                session.add(task)
                await session.commit()
                return task.id

        return asyncio.run(insert())

    return _make
