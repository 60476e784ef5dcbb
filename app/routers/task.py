"""
Task router - API endpoints for tasks and the task trash.
"""

import json
import logging
from datetime import datetime
from typing import List, Optional, Type, TypeVar
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from app.core.config import settings
from app.core.dependencies import (
    get_attachment_store,
    get_connection_manager,
    get_current_actor,
    get_db,
)
from app.core.permissions import Actor
from app.errors import ValidationError
from app.realtime.connection_manager import ConnectionManager
from app.schemas.task import TaskCreate, TaskMessage, TaskRead, TaskUpdate
from app.services.attachment_service import AttachmentUploadService
from app.services.task_lifecycle_service import TaskLifecycleService
from app.services.task_service import TaskService
from app.storage.attachment_store import AttachmentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])

SchemaT = TypeVar("SchemaT", bound=BaseModel)


async def _read_task_payload(request: Request, schema: Type[SchemaT]):
    """
    Accept either a JSON body or multipart form data.

    Multipart requests carry the task fields as a JSON string in ``data``
    and files under ``attachments``.
    """
    content_type = request.headers.get("content-type", "")
    files: List[UploadFile] = []
    try:
        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            raw = form.get("data") or "{}"
            payload = schema.model_validate(json.loads(raw))
            files = [f for f in form.getlist("attachments") if isinstance(f, UploadFile)]
        else:
            body = await request.body()
            payload = schema.model_validate_json(body or b"{}")
    except json.JSONDecodeError as exc:
        raise ValidationError("Task data is not valid JSON", {"error": str(exc)})
    except PydanticValidationError as exc:
        raise ValidationError("Invalid task data", {"errors": json.loads(exc.json())})
    return payload, files


@router.get("", response_model=List[TaskRead])
async def list_tasks(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    store: AttachmentStore = Depends(get_attachment_store),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    status: Optional[str] = None,
    priority: Optional[str] = None,
    assigned_to: Optional[UUID] = None,
    department_id: Optional[UUID] = None,
    project_id: Optional[UUID] = None,
    due_date_from: Optional[datetime] = None,
    due_date_to: Optional[datetime] = None,
):
    """
    List tasks with pagination and filters.

    Trashed tasks are excluded unless ``status=trashed`` is requested.
    """
    service = TaskService(db, store)
    return await service.list_tasks(
        actor,
        limit=limit,
        offset=offset,
        status=status,
        priority=priority,
        assigned_to=assigned_to,
        department_id=department_id,
        project_id=project_id,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
    )


@router.get("/trashed", response_model=List[TaskRead])
async def list_trashed_tasks(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    store: AttachmentStore = Depends(get_attachment_store),
):
    """Trashed tasks created by the current employee."""
    service = TaskLifecycleService(db, store)
    return await service.list_trashed_tasks(actor)


@router.get("/{task_id}", response_model=TaskRead)
async def get_task(
    task_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    store: AttachmentStore = Depends(get_attachment_store),
):
    """Get a task by ID."""
    return await TaskService(db, store).get_task(task_id, actor)


@router.post("", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
async def create_task(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    store: AttachmentStore = Depends(get_attachment_store),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """Create a new task, optionally with uploaded attachments."""
    data, files = await _read_task_payload(request, TaskCreate)
    uploads = AttachmentUploadService(store, settings.MAX_UPLOAD_BYTES)
    uploaded = await uploads.store_uploads(files, settings.MAX_ATTACHMENTS_CREATE)
    return await TaskService(db, store, manager).create_task(actor, data, uploaded)


@router.put("/{task_id}", response_model=TaskRead)
async def update_task(
    task_id: UUID,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    store: AttachmentStore = Depends(get_attachment_store),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """Update a task. A sent ``attachments`` list replaces the stored one."""
    data, files = await _read_task_payload(request, TaskUpdate)
    service = TaskService(db, store, manager)
    # Access and state are checked before any upload is written
    task = await service.get_task(task_id, actor)
    service.check_editable(task)
    uploads = AttachmentUploadService(store, settings.MAX_UPLOAD_BYTES)
    uploaded = await uploads.store_uploads(files, settings.MAX_ATTACHMENTS_UPDATE)
    return await service.update_task(task_id, actor, data, uploaded)


@router.put("/{task_id}/restore", response_model=TaskRead)
async def restore_task(
    task_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    store: AttachmentStore = Depends(get_attachment_store),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """Restore a trashed task to its previous status."""
    service = TaskLifecycleService(db, store, manager)
    return await service.restore_task(task_id, actor)


@router.delete("/{task_id}/permanent", response_model=TaskMessage)
async def permanently_delete_task(
    task_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    store: AttachmentStore = Depends(get_attachment_store),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """Permanently delete a task that is already in the trash."""
    service = TaskLifecycleService(db, store, manager)
    await service.permanently_delete_trashed_task(task_id, actor)
    return TaskMessage(message="Task permanently deleted")


@router.delete("/{task_id}")
async def delete_task(
    task_id: UUID,
    action: str = Query("trash", pattern="^(trash|delete)$"),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    store: AttachmentStore = Depends(get_attachment_store),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """
    Move a task to the trash (default) or delete it outright.

    ``?action=trash`` returns the trashed task; ``?action=delete`` removes
    the task and its attachments and returns a message.
    """
    service = TaskLifecycleService(db, store, manager)
    if action == "delete":
        report = await service.hard_delete_task(task_id, actor)
        if not report.ok:
            logger.warning("Task %s deleted with attachment failures: %s", task_id, report.as_dict())
        return TaskMessage(message="Task deleted successfully")

    task = await service.trash_task(task_id, actor)
    return TaskRead.model_validate(task)
