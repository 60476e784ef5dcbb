"""
Notification Pydantic schemas.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from app.schemas.base import RecordRead


class NotificationRead(RecordRead):
    recipient_id: UUID
    sender_id: Optional[UUID] = None
    type: str
    title: str
    message: str
    task_id: Optional[UUID] = None
    priority: str
    is_read: bool
    read_at: Optional[datetime] = None


class UnreadCount(BaseModel):
    unread: int


class MarkAllReadResult(BaseModel):
    updated: int
