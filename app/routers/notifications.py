"""
Notification router - the current employee's notifications.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_actor, get_db
from app.core.permissions import Actor
from app.schemas.notification import MarkAllReadResult, NotificationRead, UnreadCount
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationRead])
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    """Newest first."""
    return await NotificationService(db).list_notifications(actor.id, unread_only, limit, offset)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return UnreadCount(unread=await NotificationService(db).unread_count(actor.id))


@router.put("/read-all", response_model=MarkAllReadResult)
async def mark_all_read(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return MarkAllReadResult(updated=await NotificationService(db).mark_all_read(actor.id))


@router.put("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(
    notification_id: UUID,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService(db).mark_read(notification_id, actor.id)
