"""
Task Pydantic schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.attachment import AttachmentType
from app.models.task import TaskPriority, TaskStatus
from app.schemas.base import RecordRead


class AttachmentRead(BaseModel):
    """An attachment descriptor as stored on the task."""

    id: str
    type: AttachmentType
    url: str
    name: str

    model_config = ConfigDict(from_attributes=True)


class AttachmentRef(BaseModel):
    """
    Attachment entry submitted by a client on create/update.

    Entries without a url are upload placeholders and are dropped.
    """

    id: Optional[str] = None
    type: Optional[AttachmentType] = None
    url: Optional[str] = None
    name: Optional[str] = None


class TaskCreate(BaseModel):
    """Schema for creating a new task."""

    title: str
    description: Optional[str] = None
    assigned_to: Optional[UUID] = None
    department_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    status: TaskStatus = TaskStatus.PLANNED
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    estimated_hours: Decimal = Field(..., ge=Decimal("0.01"))
    tags: List[str] = Field(default_factory=list)
    attachments: List[AttachmentRef] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Title is required")
        return value.strip()

    @field_validator("status")
    @classmethod
    def status_not_trashed(cls, value: TaskStatus) -> TaskStatus:
        if value == TaskStatus.TRASHED:
            raise ValueError("Tasks cannot be created in the trash")
        return value


class TaskUpdate(BaseModel):
    """
    Schema for updating a task. All fields optional.

    When ``attachments`` is provided it replaces the stored list.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    assigned_to: Optional[UUID] = None
    department_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    estimated_hours: Optional[Decimal] = Field(None, ge=Decimal("0"))
    tags: Optional[List[str]] = None
    attachments: Optional[List[AttachmentRef]] = None
    created_at: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def status_not_trashed(cls, value: Optional[TaskStatus]) -> Optional[TaskStatus]:
        if value == TaskStatus.TRASHED:
            raise ValueError("Use the trash endpoint to move a task to the trash")
        return value


class TaskRead(RecordRead):
    """Schema for reading task data (API response)."""

    title: str
    description: Optional[str] = None
    assigned_to: Optional[UUID] = None
    created_by: UUID
    department_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    status: str
    priority: str
    due_date: Optional[datetime] = None
    start_date: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    estimated_hours: Decimal
    actual_hours: Optional[Decimal] = None
    tags: List[str] = Field(default_factory=list)
    attachments: List[AttachmentRead] = Field(default_factory=list)
    trashed_at: Optional[datetime] = None
    restored_at: Optional[datetime] = None
    status_before_trash: Optional[str] = None


class TaskMessage(BaseModel):
    """Acknowledgement body for operations that return no task."""

    message: str
