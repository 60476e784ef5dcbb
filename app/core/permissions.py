"""
Role-based permission helpers.

Defines roles, the request actor, and the task ownership rules the
services enforce.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, status


# Define role hierarchy
class Roles:
    """Standard roles in the system."""
    ADMIN = "admin"
    EMPLOYEE = "employee"

    # All roles list for validation
    ALL = [ADMIN, EMPLOYEE]


@dataclass(frozen=True)
class Actor:
    """The employee performing a request, reduced to what services need."""

    id: uuid.UUID
    role: str = Roles.EMPLOYEE
    department_id: Optional[uuid.UUID] = None

    @property
    def is_elevated(self) -> bool:
        return self.role == Roles.ADMIN


def can_manage_task(actor: Actor, created_by: uuid.UUID) -> bool:
    """Trash, restore and delete are limited to the creator or an admin."""
    return actor.is_elevated or created_by == actor.id


def can_access_task(actor: Actor, created_by: uuid.UUID, assigned_to: Optional[uuid.UUID]) -> bool:
    """Reading and editing are open to the creator, the assignee, or an admin."""
    return actor.is_elevated or actor.id in (created_by, assigned_to)


def raise_if_not_admin(actor: Actor, action: str = "perform this action") -> None:
    """
    Raise 403 error if the actor is not an admin.

    Raises:
        HTTPException: 403 if actor lacks the admin role
    """
    if not actor.is_elevated:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Admin access required to {action}"
        )
