"""
Schemas package.

Import all schemas here for easy access.
"""

from app.schemas.base import RecordRead
from app.schemas.employee import DepartmentCreate, DepartmentRead, EmployeeCreate, EmployeeRead
from app.schemas.project import ProjectCreate, ProjectUpdate, ProjectRead
from app.schemas.task import AttachmentRead, AttachmentRef, TaskCreate, TaskUpdate, TaskRead, TaskMessage
from app.schemas.notification import NotificationRead, UnreadCount, MarkAllReadResult

__all__ = [
    "RecordRead",
    "DepartmentCreate",
    "DepartmentRead",
    "EmployeeCreate",
    "EmployeeRead",
    "ProjectCreate",
    "ProjectUpdate",
    "ProjectRead",
    "AttachmentRead",
    "AttachmentRef",
    "TaskCreate",
    "TaskUpdate",
    "TaskRead",
    "TaskMessage",
    "NotificationRead",
    "UnreadCount",
    "MarkAllReadResult",
]
