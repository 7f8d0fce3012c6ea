from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
import logging

from fastapi import Depends

from ..core.config import get_settings
from ..core.exceptions import (
    ConflictError,
    DuplicateKeyError,
    ForbiddenError,
    NotFoundError,
    SelfReferenceError,
    ValidationError,
)
from ..core.store import DocumentStore, get_store
from ..schemas.notification import NotificationType
from ..schemas.swap import SwapStatus
from ..utils.timestamps import parse_timestamp, utcnow
from .notification_service import NotificationService
from .swap_service import FEEDBACK, SWAPS, is_participant
from .user_service import UserService

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500


class FeedbackService:
    def __init__(
        self,
        store: DocumentStore,
        users: UserService,
        notifications: NotificationService,
        edit_window: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.users = users
        self.notifications = notifications
        self.edit_window = edit_window
        self.clock = clock

    async def _resolve(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        user_ids = set()
        for item in items:
            user_ids.update((item["from_user_id"], item["to_user_id"]))
        summaries = await self.users.summaries(user_ids)
        return [
            {
                **item,
                "from_user": summaries.get(item["from_user_id"]),
                "to_user": summaries.get(item["to_user_id"]),
            }
            for item in items
        ]

    async def submit_feedback(
        self,
        swap_id: str,
        caller: Dict[str, Any],
        to_user_id: str,
        rating: int,
        skill_rated: str,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        caller_id = caller["id"]
        to_user_id = str(to_user_id)

        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        if comment and len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")
        if not skill_rated or not skill_rated.strip():
            raise ValidationError("Skill rated is required")

        swap = await self.store.get(SWAPS, str(swap_id))
        if not swap:
            raise NotFoundError("Swap request not found")

        if swap["status"] != SwapStatus.COMPLETED.value:
            raise ConflictError("Feedback can only be given for completed swaps")

        if not is_participant(swap, caller_id):
            raise ForbiddenError("Not authorized to give feedback for this swap")

        if to_user_id == caller_id:
            raise SelfReferenceError("Cannot rate yourself")

        if not is_participant(swap, to_user_id):
            raise ValidationError("User being rated must be involved in the swap")

        existing = await self.store.count(
            FEEDBACK, filters={"swap_request_id": swap["id"], "from_user_id": caller_id}
        )
        if existing:
            raise ConflictError("You have already given feedback for this swap")

        now = self.clock()
        feedback_data = {
            "swap_request_id": swap["id"],
            "from_user_id": caller_id,
            "to_user_id": to_user_id,
            "rating": rating,
            "comment": comment,
            "skill_rated": skill_rated.strip(),
            "created_at": now,
            "updated_at": now,
        }
        try:
            feedback = await self.store.insert(FEEDBACK, feedback_data)
        except DuplicateKeyError:
            raise ConflictError("You have already given feedback for this swap")

        logger.info(f"Feedback {feedback['id']} on swap {swap['id']}: {caller_id} rated {to_user_id} {rating}")

        # Explicit aggregate step, part of the same submission
        await self.users.refresh_rating(to_user_id)

        await self.notifications.enqueue(
            to_user_id,
            NotificationType.FEEDBACK,
            f"You received a new rating from {caller.get('name') or 'A user'}.",
            swap["id"],
        )

        return (await self._resolve([feedback]))[0]

    async def _get_editable(self, feedback_id: str, caller_id: str, verb: str) -> Dict[str, Any]:
        feedback = await self.store.get(FEEDBACK, str(feedback_id))
        if not feedback:
            raise NotFoundError("Feedback not found")

        if feedback["from_user_id"] != str(caller_id):
            raise ForbiddenError(f"Not authorized to {verb} this feedback")

        created_at = parse_timestamp(feedback["created_at"])
        if self.clock() - created_at > self.edit_window:
            hours = int(self.edit_window.total_seconds() // 3600)
            raise ConflictError(f"Feedback can only be {verb}d within {hours} hours of creation")

        return feedback

    async def update_feedback(
        self, feedback_id: str, caller_id: str, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        feedback = await self._get_editable(feedback_id, caller_id, "update")

        changes = {key: value for key, value in changes.items() if key in ("rating", "comment")}
        if "rating" in changes and not 1 <= changes["rating"] <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        if changes.get("comment") and len(changes["comment"]) > MAX_COMMENT_LENGTH:
            raise ValidationError(f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters")
        if not changes:
            return (await self._resolve([feedback]))[0]

        updated = await self.store.update(
            FEEDBACK, filters={"id": feedback["id"]}, data={**changes, "updated_at": self.clock()}
        )
        if "rating" in changes:
            await self.users.refresh_rating(feedback["to_user_id"])

        return (await self._resolve(updated))[0]

    async def delete_feedback(self, feedback_id: str, caller_id: str) -> None:
        feedback = await self._get_editable(feedback_id, caller_id, "delete")
        await self.store.delete(FEEDBACK, filters={"id": feedback["id"]})
        await self.users.refresh_rating(feedback["to_user_id"])

    async def admin_delete(self, feedback_id: str) -> None:
        feedback = await self.store.get(FEEDBACK, str(feedback_id))
        if not feedback:
            raise NotFoundError("Feedback not found")
        await self.store.delete(FEEDBACK, filters={"id": feedback["id"]})
        await self.users.refresh_rating(feedback["to_user_id"])
        logger.warning(f"Feedback {feedback['id']} deleted by moderation")

    async def list_feedback(
        self, filters: Optional[Dict[str, Any]] = None, skip: int = 0, limit: int = 10
    ) -> List[Dict[str, Any]]:
        items = await self.store.select(
            FEEDBACK, filters=filters, order_by={"created_at": "desc"}, limit=limit, offset=skip
        )
        return await self._resolve(items)

    async def list_for_swap(self, swap_id: str, caller_id: str) -> List[Dict[str, Any]]:
        swap = await self.store.get(SWAPS, str(swap_id))
        if not swap:
            raise NotFoundError("Swap request not found")
        if not is_participant(swap, caller_id):
            raise ForbiddenError("Not authorized to view feedback for this swap")

        items = await self.store.select(
            FEEDBACK, filters={"swap_request_id": swap["id"]}, order_by={"created_at": "desc"}
        )
        return await self._resolve(items)


def get_feedback_service(store: DocumentStore = Depends(get_store)) -> FeedbackService:
    settings = get_settings()
    return FeedbackService(
        store,
        UserService(store),
        NotificationService(store),
        edit_window=timedelta(hours=settings.feedback_edit_window_hours),
    )
