"""
Project Pydantic schemas.
"""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel

from app.schemas.base import RecordRead

ProjectStatus = Literal["active", "on-hold", "completed", "cancelled"]


class ProjectCreate(BaseModel):
    name: str
    description: Optional[str] = None
    status: ProjectStatus = "active"
    department_id: Optional[UUID] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProjectUpdate(BaseModel):
    """Schema for updating a project. All fields optional."""

    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    department_id: Optional[UUID] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProjectRead(RecordRead):
    name: str
    description: Optional[str] = None
    status: str
    department_id: Optional[UUID] = None
    created_by: UUID
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
