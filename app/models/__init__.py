"""
Models package.

Import all models here so they are registered with SQLAlchemy.
This file also makes it easy to import models from one place.
"""

from app.models.employee import Department, Employee
from app.models.project import Project
from app.models.task import Task, TaskPriority, TaskStatus
from app.models.notification import Notification
from app.models.attachment import Attachment, AttachmentType

# Export all models
__all__ = [
    "Department",
    "Employee",
    "Project",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "Notification",
    "Attachment",
    "AttachmentType",
]
