"""
Employee router - the employee directory.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_actor, get_current_employee, get_db
from app.core.permissions import Actor, Roles, raise_if_not_admin
from app.errors import NotFoundError, ValidationError
from app.models.employee import Employee
from app.repositories.employee_repository import EmployeeRepository
from app.schemas.employee import EmployeeCreate, EmployeeRead

router = APIRouter(prefix="/api/employees", tags=["employees"])


@router.get("", response_model=List[EmployeeRead])
async def list_employees(
    department_id: Optional[UUID] = None,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """List active employees, optionally within one department."""
    return await EmployeeRepository(db).list(department_id=department_id)


@router.get("/me", response_model=EmployeeRead)
async def get_me(employee: Employee = Depends(get_current_employee)):
    return employee


@router.get("/{employee_id}", response_model=EmployeeRead)
async def get_employee(
    employee_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    employee = await EmployeeRepository(db).get_by_id(employee_id)
    if not employee:
        raise NotFoundError(f"Employee {employee_id} not found")
    return employee


@router.post("", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
async def create_employee(
    data: EmployeeCreate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Create an employee. Admin only."""
    raise_if_not_admin(actor, "create employees")
    if data.role not in Roles.ALL:
        raise ValidationError(f"Unknown role {data.role!r}", {"allowed": Roles.ALL})
    repository = EmployeeRepository(db)
    if await repository.get_by_email(data.email):
        raise ValidationError(f"Employee with email {data.email} already exists")
    employee = await repository.create(data)
    await db.commit()
    return employee
