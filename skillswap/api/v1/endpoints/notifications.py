from fastapi import APIRouter, status, Depends, Path, Query
from typing import List, Optional
from pydantic import UUID4

from ....schemas.notification import NotificationResponse, NotificationUpdate
from ....services.notification_service import NotificationService, get_notification_service
from ...v1.endpoints.users import get_current_user

router = APIRouter(tags=["notifications"])

@router.get("/", response_model=List[NotificationResponse])
async def get_notifications(
    is_read: Optional[bool] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    """
    Get the current user's notifications, newest first.
    """
    return await notifications.list_for_user(current_user["id"], is_read=is_read, skip=skip, limit=limit)

@router.patch("/{notification_id}", response_model=NotificationResponse)
async def mark_notification(
    notification_update: NotificationUpdate,
    notification_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    """
    Mark a notification as read or unread.
    """
    return await notifications.mark(str(notification_id), current_user["id"], notification_update.is_read)

@router.patch("/", response_model=List[NotificationResponse])
async def mark_all_notifications(
    notification_update: NotificationUpdate,
    current_user: dict = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    """
    Mark all notifications as read or unread.
    """
    return await notifications.mark_all(current_user["id"], notification_update.is_read)

@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID4 = Path(...),
    current_user: dict = Depends(get_current_user),
    notifications: NotificationService = Depends(get_notification_service),
):
    """
    Delete a notification.
    """
    await notifications.delete(str(notification_id), current_user["id"])
    return None
