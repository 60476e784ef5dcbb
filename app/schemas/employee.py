"""
Employee and Department Pydantic schemas.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr

from app.schemas.base import RecordRead


class DepartmentCreate(BaseModel):
    """Schema for creating a department."""

    name: str
    description: Optional[str] = None


class DepartmentRead(RecordRead):
    name: str
    description: Optional[str] = None


class EmployeeCreate(BaseModel):
    """Schema for creating a new employee."""

    name: str
    email: EmailStr
    position: Optional[str] = None
    role: str = "employee"
    department_id: Optional[UUID] = None


class EmployeeRead(RecordRead):
    """Schema for reading employee data (API response)."""

    name: str
    email: str
    position: Optional[str] = None
    role: str
    department_id: Optional[UUID] = None
    is_active: bool
