"""
Task repository - database operations for Task.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.task import Task, TaskStatus


class TaskRepository:
    """Repository for Task database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list(
        self,
        visible_to: Optional[UUID] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[UUID] = None,
        department_id: Optional[UUID] = None,
        project_id: Optional[UUID] = None,
        due_date_from: Optional[datetime] = None,
        due_date_to: Optional[datetime] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Task]:
        """
        List tasks with filters, newest first.

        ``visible_to`` restricts results to tasks the employee created or is
        assigned to. Trashed tasks are only returned when asked for by status.
        """
        query = select(Task)

        if visible_to is not None:
            query = query.where(or_(Task.assigned_to == visible_to, Task.created_by == visible_to))
        if status is not None:
            query = query.where(Task.status == status)
        else:
            query = query.where(Task.status != TaskStatus.TRASHED.value)
        if priority is not None:
            query = query.where(Task.priority == priority)
        if assigned_to is not None:
            query = query.where(Task.assigned_to == assigned_to)
        if department_id is not None:
            query = query.where(Task.department_id == department_id)
        if project_id is not None:
            query = query.where(Task.project_id == project_id)
        if due_date_from is not None:
            query = query.where(Task.due_date >= due_date_from)
        if due_date_to is not None:
            query = query.where(Task.due_date <= due_date_to)

        query = query.order_by(Task.created_at.desc()).limit(limit).offset(offset)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_trashed_by_creator(self, created_by: UUID) -> List[Task]:
        """Trashed tasks created by one employee, most recently trashed first."""
        result = await self.db.execute(
            select(Task)
            .where(
                Task.status == TaskStatus.TRASHED.value,
                Task.created_by == created_by,
            )
            .order_by(Task.trashed_at.desc())
        )
        return list(result.scalars().all())

    async def list_expired_trash_ids(self, cutoff: datetime) -> List[UUID]:
        """Ids of trashed tasks whose trashed_at is older than ``cutoff``."""
        result = await self.db.execute(
            select(Task.id)
            .where(
                Task.status == TaskStatus.TRASHED.value,
                Task.trashed_at < cutoff,
            )
            .order_by(Task.trashed_at.asc())
        )
        return list(result.scalars().all())

    async def get_expired_trashed(self, task_id: UUID, cutoff: datetime) -> Optional[Task]:
        """Re-read a task only if it is still trashed and past ``cutoff``."""
        result = await self.db.execute(
            select(Task).where(
                Task.id == task_id,
                Task.status == TaskStatus.TRASHED.value,
                Task.trashed_at < cutoff,
            )
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, task_id: UUID) -> Optional[Task]:
        """Get a task by ID."""
        result = await self.db.execute(select(Task).where(Task.id == task_id))
        return result.scalar_one_or_none()

    async def create(self, values: Dict[str, Any]) -> Task:
        """Create a new task."""
        task = Task(**values)
        self.db.add(task)
        await self.db.flush()
        await self.db.refresh(task)
        return task

    async def update_fields(self, task: Task, values: Dict[str, Any]) -> Task:
        """Apply field updates to a loaded task and flush them."""
        for field, value in values.items():
            setattr(task, field, value)
        await self.db.flush()
        await self.db.refresh(task)
        return task

    async def delete_by_id(self, task_id: UUID) -> bool:
        """
        Remove a task row.

        Returns False when the row was already gone; that is not an error.
        """
        result = await self.db.execute(delete(Task).where(Task.id == task_id))
        await self.db.flush()
        return bool(result.rowcount)
