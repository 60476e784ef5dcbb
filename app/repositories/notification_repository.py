"""
Notification repository - database operations for Notification.
"""

import uuid
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification
from app.utils.time import utc_now


class NotificationRepository:
    """Repository for Notification database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        recipient_id: UUID,
        sender_id: Optional[UUID],
        type: str,
        title: str,
        message: str,
        task_id: Optional[UUID] = None,
        priority: str = "medium",
    ) -> Notification:
        notification = Notification(
            id=uuid.uuid4(),
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=type,
            title=title,
            message=message,
            task_id=task_id,
            priority=priority,
            is_read=False,
        )
        self.db.add(notification)
        await self.db.flush()
        await self.db.refresh(notification)
        return notification

    async def list_for_recipient(
        self,
        recipient_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Notification]:
        query = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_unread(self, recipient_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
        )
        return int(result.scalar_one())

    async def get_for_recipient(self, notification_id: UUID, recipient_id: UUID) -> Optional[Notification]:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == recipient_id,
            )
        )
        return result.scalar_one_or_none()

    async def mark_read(self, notification: Notification) -> Notification:
        notification.is_read = True
        notification.read_at = utc_now()
        await self.db.flush()
        await self.db.refresh(notification)
        return notification

    async def mark_all_read(self, recipient_id: UUID) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=utc_now())
        )
        await self.db.flush()
        return int(result.rowcount or 0)
