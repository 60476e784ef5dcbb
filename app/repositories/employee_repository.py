"""
Employee and department repository - database operations for the directory.
"""

import uuid
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.employee import Department, Employee
from app.schemas.employee import DepartmentCreate, EmployeeCreate


class EmployeeRepository:
    """Repository for Employee and Department database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, employee_id: UUID) -> Optional[Employee]:
        result = await self.db.execute(select(Employee).where(Employee.id == employee_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[Employee]:
        result = await self.db.execute(select(Employee).where(Employee.email == email))
        return result.scalar_one_or_none()

    async def list(self, department_id: Optional[UUID] = None, active_only: bool = True) -> List[Employee]:
        query = select(Employee)
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        if active_only:
            query = query.where(Employee.is_active.is_(True))
        result = await self.db.execute(query.order_by(Employee.name.asc()))
        return list(result.scalars().all())

    async def create(self, data: EmployeeCreate) -> Employee:
        employee = Employee(id=uuid.uuid4(), **data.model_dump())
        self.db.add(employee)
        await self.db.flush()
        await self.db.refresh(employee)
        return employee

    async def list_departments(self) -> List[Department]:
        result = await self.db.execute(select(Department).order_by(Department.name.asc()))
        return list(result.scalars().all())

    async def get_department_by_name(self, name: str) -> Optional[Department]:
        result = await self.db.execute(select(Department).where(Department.name == name))
        return result.scalar_one_or_none()

    async def create_department(self, data: DepartmentCreate) -> Department:
        department = Department(id=uuid.uuid4(), **data.model_dump())
        self.db.add(department)
        await self.db.flush()
        await self.db.refresh(department)
        return department
