from typing import Any, Dict, List, Optional
import logging

from fastapi import Depends

from ..core.exceptions import ForbiddenError, NotFoundError
from ..core.store import DocumentStore, get_store
from ..schemas.notification import NotificationType
from ..utils.timestamps import utcnow

logger = logging.getLogger(__name__)

NOTIFICATIONS = "notifications"


class NotificationService:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def enqueue(
        self,
        user_id: str,
        type: NotificationType,
        message: str,
        swap_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Best-effort notification write. Failures are logged, never raised."""
        notification_data = {
            "user_id": str(user_id),
            "type": type.value,
            "message": message,
            "swap_request_id": str(swap_id) if swap_id else None,
            "is_read": False,
            "created_at": utcnow(),
        }
        try:
            return await self.store.insert(NOTIFICATIONS, notification_data)
        except Exception:
            logger.exception(f"Failed to create {type.value} notification for user {user_id}")
            return None

    async def list_for_user(
        self, user_id: str, is_read: Optional[bool] = None, skip: int = 0, limit: int = 20
    ) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {"user_id": str(user_id)}
        if is_read is not None:
            filters["is_read"] = is_read

        return await self.store.select(
            NOTIFICATIONS, filters=filters, order_by={"created_at": "desc"}, limit=limit, offset=skip
        )

    async def _get_own(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        notification = await self.store.get(NOTIFICATIONS, str(notification_id))
        if not notification:
            raise NotFoundError("Notification not found")
        if notification["user_id"] != str(user_id):
            raise ForbiddenError("You don't have permission to access this notification")
        return notification

    async def mark(self, notification_id: str, user_id: str, is_read: bool = True) -> Dict[str, Any]:
        notification = await self._get_own(notification_id, user_id)
        updated = await self.store.update(
            NOTIFICATIONS, filters={"id": notification["id"]}, data={"is_read": is_read}
        )
        return updated[0]

    async def mark_all(self, user_id: str, is_read: bool = True) -> List[Dict[str, Any]]:
        return await self.store.update(
            NOTIFICATIONS,
            filters={"user_id": str(user_id), "is_read": not is_read},
            data={"is_read": is_read},
        )

    async def delete(self, notification_id: str, user_id: str) -> None:
        notification = await self._get_own(notification_id, user_id)
        await self.store.delete(NOTIFICATIONS, filters={"id": notification["id"]})


def get_notification_service(store: DocumentStore = Depends(get_store)) -> NotificationService:
    return NotificationService(store)
