"""
Task trash lifecycle.

Moves tasks into and out of the trash, permanently deletes them together
with their attachment blobs, and expires old trash on a schedule.

State machine::

    active (planned / in-progress / completed / cancelled)
        -> trashed           trash_task
        -> gone              hard_delete_task
    trashed
        -> active            restore_task
        -> gone              permanently_delete_trashed_task, expiry sweep

Row removal always happens after every attachment deletion attempt has been
issued. Blob deletion is best-effort and outside the database transaction.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Actor, can_manage_task
from app.errors import ForbiddenError, InvalidStateError, NotFoundError
from app.models.task import Task, TaskStatus
from app.realtime.connection_manager import EventPublisher
from app.repositories.task_repository import TaskRepository
from app.schemas.task import TaskRead
from app.storage.attachment_store import AttachmentCleanupReport, AttachmentStore
from app.utils.time import utc_now

logger = logging.getLogger(__name__)

TASK_UPDATED = "task_updated"
TASK_DELETED = "task_deleted"

DEFAULT_RETENTION_DAYS = 30


def task_event_payload(task: Task) -> Dict[str, Any]:
    return TaskRead.model_validate(task).model_dump(mode="json")


def task_recipients(task: Task) -> Set[UUID]:
    """Employees entitled to see events about ``task``, besides admins."""
    return {task.created_by, task.assigned_to} - {None}


async def emit(
    publisher: Optional[EventPublisher],
    event_kind: str,
    payload: Dict[str, Any],
    recipients: Iterable[UUID],
) -> None:
    """Publish without letting fan-out problems reach the caller."""
    if publisher is None:
        return
    try:
        await publisher.publish(event_kind, payload, recipients=set(recipients))
    except Exception:  # noqa: BLE001
        logger.exception("Failed to publish %s event", event_kind)


async def purge_task(
    db: AsyncSession,
    store: AttachmentStore,
    task: Task,
) -> Tuple[bool, AttachmentCleanupReport]:
    """
    Delete a task's attachments, then its row. Does not commit.

    Returns whether a row was removed and the attachment cleanup report.
    """
    task_id = task.id
    report = await store.remove_attachments(list(task.attachments or []))
    if not report.ok:
        logger.warning(
            "Task %s: %d of %d attachment deletions failed",
            task_id,
            len(report.failures),
            report.attempted,
        )
    removed = await TaskRepository(db).delete_by_id(task_id)
    return removed, report


class TaskLifecycleService:
    """Trash, restore and permanent deletion of tasks."""

    def __init__(
        self,
        db: AsyncSession,
        store: AttachmentStore,
        publisher: Optional[EventPublisher] = None,
    ):
        self.db = db
        self.repo = TaskRepository(db)
        self.store = store
        self.publisher = publisher

    async def _load(self, task_id: UUID) -> Task:
        task = await self.repo.get_by_id(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        return task

    def _check_manage(self, task: Task, actor: Actor) -> None:
        if not can_manage_task(actor, task.created_by):
            raise ForbiddenError("Only the task creator or an admin can do this")

    async def trash_task(self, task_id: UUID, actor: Actor) -> Task:
        """Move a task to the trash, remembering its status for restore."""
        task = await self._load(task_id)
        self._check_manage(task, actor)
        if task.is_trashed:
            raise InvalidStateError("Task is already in trash")

        task = await self.repo.update_fields(
            task,
            {
                "status_before_trash": task.status,
                "status": TaskStatus.TRASHED.value,
                "trashed_at": utc_now(),
            },
        )
        await self.db.commit()
        logger.info("Task %s moved to trash by %s", task.id, actor.id)

        await emit(
            self.publisher,
            TASK_UPDATED,
            {"task": task_event_payload(task), "actor_id": str(actor.id)},
            task_recipients(task),
        )
        return task

    async def restore_task(self, task_id: UUID, actor: Actor) -> Task:
        """Bring a trashed task back to the status it had before trashing."""
        task = await self._load(task_id)
        if not task.is_trashed:
            raise InvalidStateError("Task is not in trash")
        self._check_manage(task, actor)

        # assigned_to is preserved
        task = await self.repo.update_fields(
            task,
            {
                "status": task.status_before_trash or TaskStatus.PLANNED.value,
                "status_before_trash": None,
                "restored_at": utc_now(),
                "trashed_at": None,
            },
        )
        await self.db.commit()
        logger.info("Task %s restored to %s by %s", task.id, task.status, actor.id)

        await emit(
            self.publisher,
            TASK_UPDATED,
            {"task": task_event_payload(task), "actor_id": str(actor.id)},
            task_recipients(task),
        )
        return task

    async def permanently_delete_trashed_task(self, task_id: UUID, actor: Actor) -> AttachmentCleanupReport:
        """Permanently delete a task that is currently in the trash."""
        task = await self._load(task_id)
        if not task.is_trashed:
            raise InvalidStateError("Task is not in trash")
        self._check_manage(task, actor)
        return await self._delete(task, actor)

    async def hard_delete_task(self, task_id: UUID, actor: Actor) -> AttachmentCleanupReport:
        """Permanently delete a task in any status, skipping the trash."""
        task = await self._load(task_id)
        self._check_manage(task, actor)
        return await self._delete(task, actor)

    async def _delete(self, task: Task, actor: Actor) -> AttachmentCleanupReport:
        task_id, department_id = task.id, task.department_id
        recipients = task_recipients(task)
        removed, report = await purge_task(self.db, self.store, task)
        await self.db.commit()
        if not removed:
            # Already removed by a concurrent delete or sweep
            logger.debug("Task %s was gone before %s could delete it", task_id, actor.id)
            return report
        logger.info("Task %s permanently deleted by %s", task_id, actor.id)

        await emit(
            self.publisher,
            TASK_DELETED,
            {
                "task_id": str(task_id),
                "department_id": str(department_id) if department_id else None,
                "actor_id": str(actor.id),
            },
            recipients,
        )
        return report

    async def list_trashed_tasks(self, actor: Actor) -> List[Task]:
        """
        Trashed tasks the actor created, most recently trashed first.

        Admins get the same creator-scoped view.
        """
        return await self.repo.list_trashed_by_creator(actor.id)


@dataclass
class SweepResult:
    deleted_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    failures: List[Dict[str, str]] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "deleted_count": self.deleted_count,
            "failed_count": self.failed_count,
            "skipped_count": self.skipped_count,
            "failures": self.failures,
        }


class TrashSweepService:
    """
    Expires trashed tasks older than the retention window.

    Every task is handled in its own session so one failure cannot roll back
    or block the others. A task whose attachments could not all be deleted is
    still removed and counted in both ``deleted_count`` and ``failed_count``.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        store: AttachmentStore,
        publisher: Optional[EventPublisher] = None,
    ):
        self.session_factory = session_factory
        self.store = store
        self.publisher = publisher

    async def run_expiry_sweep(
        self,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        now: Optional[datetime] = None,
    ) -> SweepResult:
        cutoff = (now or utc_now()) - timedelta(days=retention_days)
        logger.info("Running trash sweep: deleting tasks trashed before %s", cutoff.isoformat())

        async with self.session_factory() as session:
            task_ids = await TaskRepository(session).list_expired_trash_ids(cutoff)
        logger.info("Found %d trashed tasks older than %d days", len(task_ids), retention_days)

        result = SweepResult()
        for task_id in task_ids:
            await self._expire_one(task_id, cutoff, result)

        logger.info(
            "Completed trash sweep: deleted=%d failed=%d skipped=%d",
            result.deleted_count,
            result.failed_count,
            result.skipped_count,
        )
        return result

    async def _expire_one(self, task_id: UUID, cutoff: datetime, result: SweepResult) -> None:
        async with self.session_factory() as session:
            try:
                task = await TaskRepository(session).get_expired_trashed(task_id, cutoff)
                if task is None:
                    # Deleted or restored since selection
                    result.skipped_count += 1
                    return

                department_id, recipients = task.department_id, task_recipients(task)
                removed, report = await purge_task(session, self.store, task)
                await session.commit()
            except Exception as exc:  # noqa: BLE001
                await session.rollback()
                logger.error("Error deleting trashed task %s: %s", task_id, exc, exc_info=True)
                result.failed_count += 1
                result.failures.append({"task_id": str(task_id), "error": str(exc)})
                return

        if not removed:
            result.skipped_count += 1
            return

        result.deleted_count += 1
        if not report.ok:
            result.failed_count += 1
            result.failures.extend(
                {"task_id": str(task_id), "url": url, "error": error} for url, error in report.failures
            )
        logger.info("Permanently deleted trashed task: %s", task_id)

        await emit(
            self.publisher,
            TASK_DELETED,
            {
                "task_id": str(task_id),
                "department_id": str(department_id) if department_id else None,
                "actor_id": None,
            },
            recipients,
        )

