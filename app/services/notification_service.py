"""
Notification business logic service.

Persists notifications and pushes them to the recipient's open sockets.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFoundError
from app.models.notification import Notification
from app.realtime.connection_manager import ConnectionManager
from app.repositories.notification_repository import NotificationRepository
from app.schemas.notification import NotificationRead

logger = logging.getLogger(__name__)


class NotificationService:
    """Service for notification business logic."""

    def __init__(self, db: AsyncSession, manager: Optional[ConnectionManager] = None):
        self.db = db
        self.repository = NotificationRepository(db)
        self.manager = manager

    async def notify(
        self,
        recipient_id: UUID,
        sender_id: Optional[UUID],
        type: str,
        title: str,
        message: str,
        task_id: Optional[UUID] = None,
        priority: str = "medium",
        data: Optional[dict] = None,
    ) -> Notification:
        """Create a notification row and push it over WebSocket when possible."""
        notification = await self.repository.create(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=type,
            title=title,
            message=message,
            task_id=task_id,
            priority=priority,
        )

        if self.manager is not None:
            payload = NotificationRead.model_validate(notification).model_dump(mode="json")
            if data is not None:
                payload["data"] = data
            try:
                await self.manager.send_to_employee(recipient_id, "notification", payload)
            except Exception:  # noqa: BLE001
                logger.exception("Failed to push notification %s", notification.id)

        return notification

    async def list_notifications(
        self,
        recipient_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Notification]:
        return await self.repository.list_for_recipient(recipient_id, unread_only, limit, offset)

    async def unread_count(self, recipient_id: UUID) -> int:
        return await self.repository.count_unread(recipient_id)

    async def mark_read(self, notification_id: UUID, recipient_id: UUID) -> Notification:
        notification = await self.repository.get_for_recipient(notification_id, recipient_id)
        if notification is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        notification = await self.repository.mark_read(notification)
        await self.db.commit()
        return notification

    async def mark_all_read(self, recipient_id: UUID) -> int:
        updated = await self.repository.mark_all_read(recipient_id)
        await self.db.commit()
        return updated
