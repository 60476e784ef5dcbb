"""Expiry sweep over trashed tasks."""

import asyncio
from datetime import timedelta

import pytest

from app.errors import StorageBackendError
from app.models.attachment import Attachment, AttachmentType
from app.repositories.task_repository import TaskRepository
from app.services.task_lifecycle_service import TASK_DELETED, TrashSweepService
from app.storage.attachment_store import AttachmentStore
from app.utils.time import utc_now
from app.workers.trash_sweeper import TrashSweepRunner

pytestmark = pytest.mark.unit


def exists(session_factory, task_id):
    async def main():
        async with session_factory() as session:
            return await TaskRepository(session).get_by_id(task_id) is not None

    return asyncio.run(main())


def trashed_days_ago(make_task, days, **values):
    return make_task(
        status="trashed",
        status_before_trash="planned",
        trashed_at=utc_now() - timedelta(days=days),
        **values,
    )


def test_sweep_deletes_only_expired_trash(session_factory, store, publisher, make_task, uploads_dir):
    (uploads_dir / "old.txt").write_text("old")
    old = trashed_days_ago(
        make_task,
        40,
        attachments=[Attachment(id="o", type=AttachmentType.DOCUMENT, url="/uploads/old.txt", name="old.txt")],
    )
    recent = trashed_days_ago(make_task, 10)
    active = make_task(status="planned")

    result = asyncio.run(TrashSweepService(session_factory, store, publisher).run_expiry_sweep(retention_days=30))

    assert result.deleted_count == 1
    assert result.failed_count == 0
    assert not exists(session_factory, old)
    assert exists(session_factory, recent)
    assert exists(session_factory, active)
    assert not (uploads_dir / "old.txt").exists()
    assert publisher.kinds() == [TASK_DELETED]
    assert publisher.events[0][1]["task_id"] == str(old)
    assert publisher.events[0][1]["actor_id"] is None


def test_sweep_honours_retention_window(session_factory, store, make_task):
    task_id = trashed_days_ago(make_task, 10)

    result = asyncio.run(TrashSweepService(session_factory, store).run_expiry_sweep(retention_days=7))

    assert result.deleted_count == 1
    assert not exists(session_factory, task_id)


def test_sweep_with_nothing_expired(session_factory, store, make_task):
    trashed_days_ago(make_task, 1)

    result = asyncio.run(TrashSweepService(session_factory, store).run_expiry_sweep())

    assert result.as_dict() == {"deleted_count": 0, "failed_count": 0, "skipped_count": 0, "failures": []}


class ExplodingStore(AttachmentStore):
    """Raises for any task that carries a url containing ``boom``."""

    async def remove_attachments(self, attachments):
        attachments = list(attachments)
        if any("boom" in a.url for a in attachments):
            raise RuntimeError("storage exploded")
        return await super().remove_attachments(attachments)


def test_one_failing_task_does_not_stop_the_sweep(session_factory, store, make_task):
    exploding = ExplodingStore(store.upload_backend, store.backends)
    bad = trashed_days_ago(
        make_task,
        45,
        attachments=[Attachment(id="b", type=AttachmentType.DOCUMENT, url="/uploads/boom.txt", name="boom.txt")],
    )
    good = trashed_days_ago(make_task, 35)

    result = asyncio.run(TrashSweepService(session_factory, exploding).run_expiry_sweep())

    assert result.deleted_count == 1
    assert result.failed_count == 1
    assert result.failures[0]["task_id"] == str(bad)
    assert exists(session_factory, bad)
    assert not exists(session_factory, good)


class RefusingBackend:
    """Owns every ``refuse://`` url and fails to delete it."""

    name = "refusing"
    is_configured = True

    def owns(self, url):
        return url.startswith("refuse://")

    async def save(self, content, filename, content_type):
        raise StorageBackendError("read only")

    async def delete(self, url):
        raise StorageBackendError("permission denied")


def test_attachment_failure_still_deletes_row(session_factory, store, make_task):
    refusing = AttachmentStore(store.upload_backend, [RefusingBackend(), *store.backends])
    task_id = trashed_days_ago(
        make_task,
        31,
        attachments=[Attachment(id="r", type=AttachmentType.PHOTO, url="refuse://bucket/x.png", name="x.png")],
    )

    result = asyncio.run(TrashSweepService(session_factory, refusing).run_expiry_sweep())

    assert result.deleted_count == 1
    assert result.failed_count == 1
    assert result.failures == [{"task_id": str(task_id), "url": "refuse://bucket/x.png", "error": "permission denied"}]
    assert not exists(session_factory, task_id)


def test_restored_task_is_not_expired(session_factory, make_task):
    task_id = trashed_days_ago(make_task, 50)

    async def main():
        async with session_factory() as session:
            repo = TaskRepository(session)
            task = await repo.get_by_id(task_id)
            await repo.update_fields(task, {"status": "planned", "trashed_at": None})
            await session.commit()
            return await repo.get_expired_trashed(task_id, utc_now() - timedelta(days=30))

    assert asyncio.run(main()) is None


def test_runner_run_once_uses_configured_retention(session_factory, store, make_task):
    task_id = trashed_days_ago(make_task, 3)
    runner = TrashSweepRunner(session_factory, store, retention_days=2)

    result = asyncio.run(runner.run_once())

    assert result.deleted_count == 1
    assert not exists(session_factory, task_id)


def test_runner_stops_when_requested(session_factory, store):
    runner = TrashSweepRunner(session_factory, store, sweep_hour_utc=(utc_now().hour + 12) % 24)

    async def main():
        loop_task = asyncio.create_task(runner.run_forever())
        await asyncio.sleep(0.05)
        runner.request_stop()
        await asyncio.wait_for(loop_task, timeout=2)

    asyncio.run(main())
