"""
Department router - API endpoints for departments.
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_actor, get_db
from app.core.permissions import Actor, raise_if_not_admin
from app.errors import ValidationError
from app.repositories.employee_repository import EmployeeRepository
from app.schemas.employee import DepartmentCreate, DepartmentRead

router = APIRouter(prefix="/api/departments", tags=["departments"])


@router.get("", response_model=List[DepartmentRead])
async def list_departments(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeRepository(db).list_departments()


@router.post("", response_model=DepartmentRead, status_code=status.HTTP_201_CREATED)
async def create_department(
    data: DepartmentCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Create a department. Admin only; names are unique."""
    raise_if_not_admin(actor, "create departments")
    repository = EmployeeRepository(db)
    if await repository.get_department_by_name(data.name):
        raise ValidationError(f"Department {data.name!r} already exists")
    department = await repository.create_department(data)
    await db.commit()
    return department
