"""
FastAPI dependencies for the application.
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Actor
from app.db.session import get_db
from app.models.employee import Employee
from app.realtime.connection_manager import ConnectionManager
from app.repositories.employee_repository import EmployeeRepository
from app.storage.attachment_store import AttachmentStore

__all__ = [
    "get_db",
    "get_current_employee",
    "get_current_actor",
    "get_attachment_store",
    "get_connection_manager",
]


async def get_current_employee(
    x_employee_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Employee:
    """
    Resolve the acting employee from the X-Employee-ID header.

    Raises:
        401: header missing, malformed, or unknown employee
        403: employee is inactive
    """
    if not x_employee_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Employee-ID header is required",
        )
    try:
        employee_id = UUID(x_employee_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Employee-ID header is not a valid id",
        )

    employee = await EmployeeRepository(db).get_by_id(employee_id)
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Employee not found",
        )
    if not employee.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Employee account is inactive",
        )
    return employee


async def get_current_actor(employee: Employee = Depends(get_current_employee)) -> Actor:
    return Actor(id=employee.id, role=employee.role, department_id=employee.department_id)


def get_attachment_store(request: Request) -> AttachmentStore:
    return request.app.state.attachment_store


def get_connection_manager(request: Request) -> ConnectionManager:
    return request.app.state.connection_manager
