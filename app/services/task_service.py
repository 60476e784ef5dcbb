"""
Task business logic service.

Listing, creation and editing of tasks. The trash lifecycle lives in
``task_lifecycle_service``.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Actor, can_access_task
from app.errors import ForbiddenError, InvalidStateError, NotFoundError
from app.models.attachment import Attachment
from app.models.task import Task, TaskStatus
from app.realtime.connection_manager import ConnectionManager
from app.repositories.task_repository import TaskRepository
from app.schemas.task import TaskCreate, TaskUpdate
from app.services.attachment_service import kept_attachments
from app.services.notification_service import NotificationService
from app.services.task_lifecycle_service import TASK_UPDATED, emit, task_event_payload, task_recipients
from app.storage.attachment_store import AttachmentStore
from app.utils.time import utc_now

logger = logging.getLogger(__name__)

TASK_CREATED = "task_created"


class TaskService:
    """Service for task business logic."""

    def __init__(
        self,
        db: AsyncSession,
        store: AttachmentStore,
        manager: Optional[ConnectionManager] = None,
    ):
        self.db = db
        self.repository = TaskRepository(db)
        self.store = store
        self.manager = manager
        self.notifications = NotificationService(db, manager)

    async def list_tasks(
        self,
        actor: Actor,
        limit: int = 100,
        offset: int = 0,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[UUID] = None,
        department_id: Optional[UUID] = None,
        project_id: Optional[UUID] = None,
        due_date_from: Optional[datetime] = None,
        due_date_to: Optional[datetime] = None,
    ) -> List[Task]:
        """List tasks with filters. Employees only see tasks they created or hold."""
        return await self.repository.list(
            visible_to=None if actor.is_elevated else actor.id,
            status=status,
            priority=priority,
            assigned_to=assigned_to,
            department_id=department_id,
            project_id=project_id,
            due_date_from=due_date_from,
            due_date_to=due_date_to,
            limit=limit,
            offset=offset,
        )

    async def get_task(self, task_id: UUID, actor: Actor) -> Task:
        task = await self.repository.get_by_id(task_id)
        if task is None:
            raise NotFoundError(f"Task {task_id} not found")
        if not can_access_task(actor, task.created_by, task.assigned_to):
            raise ForbiddenError("You do not have access to this task")
        return task

    async def create_task(
        self,
        actor: Actor,
        data: TaskCreate,
        uploaded: Sequence[Attachment] = (),
    ) -> Task:
        """
        Create a task owned by ``actor``.

        Employees always create tasks for themselves; admins may pick any
        assignee or leave it empty.
        """
        values: Dict[str, Any] = data.model_dump(exclude={"attachments", "created_at"})
        values["status"] = data.status.value
        values["priority"] = data.priority.value
        values["created_by"] = actor.id
        if not actor.is_elevated:
            values["assigned_to"] = actor.id
        if values.get("department_id") is None:
            values["department_id"] = actor.department_id
        if actor.is_elevated and data.created_at is not None:
            values["created_at"] = data.created_at

        _apply_status_dates(values, data.status.value)
        values["attachments"] = kept_attachments(data.attachments) + list(uploaded)

        try:
            task = await self.repository.create(values)
            await self.db.commit()
        except Exception:
            await self._discard_uploads(uploaded)
            raise
        logger.info("Task %s created by %s", task.id, actor.id)

        if task.assigned_to is not None and task.assigned_to != actor.id:
            await self._notify_assignment(task, actor)

        await emit(
            self.manager,
            TASK_CREATED,
            {"task": task_event_payload(task), "actor_id": str(actor.id)},
            task_recipients(task),
        )
        return task

    async def update_task(
        self,
        task_id: UUID,
        actor: Actor,
        data: TaskUpdate,
        uploaded: Sequence[Attachment] = (),
    ) -> Task:
        """
        Update a task the actor can access.

        When ``attachments`` is sent it replaces the stored list and blobs of
        dropped entries are deleted. Newly uploaded files are appended, and
        removed again if the update is rejected or fails to commit.
        """
        try:
            task = await self.get_task(task_id, actor)
            self.check_editable(task)

            changes: Dict[str, Any] = data.model_dump(exclude_unset=True, exclude={"attachments", "created_at"})
            for required in ("title", "status", "priority", "estimated_hours", "tags"):
                if required in changes and changes[required] is None:
                    del changes[required]
            if "assigned_to" in changes and changes["assigned_to"] != task.assigned_to and not actor.is_elevated:
                raise ForbiddenError("Only admins can reassign tasks")
            if "status" in changes:
                changes["status"] = TaskStatus(changes["status"]).value
                if changes["status"] != task.status:
                    _apply_status_dates(changes, changes["status"], task)
            if "priority" in changes:
                changes["priority"] = changes["priority"].value
            if actor.is_elevated and data.created_at is not None:
                changes["created_at"] = data.created_at

            previous = list(task.attachments or [])
            if data.attachments is not None:
                attachments = kept_attachments(data.attachments)
            else:
                attachments = list(previous)
            if data.attachments is not None or uploaded:
                changes["attachments"] = attachments + list(uploaded)

            old_status, old_assignee = task.status, task.assigned_to
            task = await self.repository.update_fields(task, changes)
            await self.db.commit()
        except Exception:
            await self._discard_uploads(uploaded)
            raise
        logger.info("Task %s updated by %s", task.id, actor.id)

        if "attachments" in changes:
            kept_urls = {a.url for a in task.attachments}
            dropped = [a for a in previous if a.url not in kept_urls]
            if dropped:
                await self.store.remove_attachments(dropped)

        if task.assigned_to != old_assignee:
            if task.assigned_to is not None and task.assigned_to != actor.id:
                await self._notify_assignment(task, actor)
            if old_assignee is not None and old_assignee != actor.id:
                await self._notify_unassignment(task, actor, old_assignee)
        if task.status != old_status:
            await self._notify_status_change(task, actor, old_status)

        recipients = task_recipients(task) | ({old_assignee} - {None})
        await emit(
            self.manager,
            TASK_UPDATED,
            {"task": task_event_payload(task), "actor_id": str(actor.id)},
            recipients,
        )
        return task

    def check_editable(self, task: Task) -> None:
        if task.is_trashed:
            raise InvalidStateError("Restore the task before editing it")

    async def _discard_uploads(self, uploaded: Sequence[Attachment]) -> None:
        if not uploaded:
            return
        report = await self.store.remove_attachments(list(uploaded))
        logger.info("Removed %d uploads of a rejected task write", report.attempted)

    async def _notify_assignment(self, task: Task, actor: Actor) -> None:
        await self.notifications.notify(
            recipient_id=task.assigned_to,
            sender_id=actor.id,
            type="task_assigned",
            title="New task assigned",
            message=f"You have been assigned: {task.title}",
            task_id=task.id,
            priority=task.priority,
        )
        await self.db.commit()

    async def _notify_unassignment(self, task: Task, actor: Actor, previous_assignee: UUID) -> None:
        await self.notifications.notify(
            recipient_id=previous_assignee,
            sender_id=actor.id,
            type="task_unassigned",
            title="Task reassigned",
            message=f"You are no longer assigned to: {task.title}",
            task_id=task.id,
            priority=task.priority,
        )
        await self.db.commit()

    async def _notify_status_change(self, task: Task, actor: Actor, old_status: str) -> None:
        recipients = {task.created_by, task.assigned_to} - {None, actor.id}
        for recipient_id in recipients:
            await self.notifications.notify(
                recipient_id=recipient_id,
                sender_id=actor.id,
                type="task_status_changed",
                title="Task status changed",
                message=f"{task.title}: {old_status} -> {task.status}",
                task_id=task.id,
                priority=task.priority,
            )
        if recipients:
            await self.db.commit()


def _apply_status_dates(values: Dict[str, Any], status: str, task: Optional[Task] = None) -> None:
    """Stamp start/completion dates when a task enters those statuses."""
    if status == TaskStatus.IN_PROGRESS.value and (task is None or task.start_date is None):
        values["start_date"] = utc_now()
    elif status == TaskStatus.COMPLETED.value:
        values["completed_date"] = utc_now()
        if task is None:
            values.setdefault("actual_hours", Decimal("0"))
