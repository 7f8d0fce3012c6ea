"""
Swap request lifecycle.

    pending ──accept──> accepted ──complete──> completed
       │                   │
       ├──reject──> rejected
       └──cancel──> cancelled <──cancel──┘

Only the recipient may accept or reject. Either participant may cancel an
active swap or complete an accepted one. rejected, cancelled and completed are
terminal.
"""
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Tuple
import logging

from fastapi import Depends

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
from ..schemas.swap import ACTIVE_STATUSES, SwapAction, SwapStatus
from ..utils.timestamps import utcnow
from .notification_service import NotificationService
from .user_service import UserService

logger = logging.getLogger(__name__)

SWAPS = "swap_requests"
FEEDBACK = "feedback"
MAX_MESSAGE_LENGTH = 500
MAX_REASON_LENGTH = 200


class Transition(NamedTuple):
    sources: Tuple[SwapStatus, ...]
    target: SwapStatus
    recipient_only: bool


TRANSITIONS: Dict[SwapAction, Transition] = {
    SwapAction.ACCEPT: Transition((SwapStatus.PENDING,), SwapStatus.ACCEPTED, True),
    SwapAction.REJECT: Transition((SwapStatus.PENDING,), SwapStatus.REJECTED, True),
    SwapAction.CANCEL: Transition(ACTIVE_STATUSES, SwapStatus.CANCELLED, False),
    SwapAction.COMPLETE: Transition((SwapStatus.ACCEPTED,), SwapStatus.COMPLETED, False),
}


def pair_key(user_a: str, user_b: str) -> str:
    """Order-independent key for a pair of users."""
    first, second = sorted((str(user_a), str(user_b)))
    return f"{first}:{second}"


def is_participant(swap: Dict[str, Any], user_id: str) -> bool:
    return str(user_id) in (swap["requester_id"], swap["recipient_id"])


class SwapService:
    def __init__(self, store: DocumentStore, users: UserService, notifications: NotificationService):
        self.store = store
        self.users = users
        self.notifications = notifications

    async def _resolve(self, swaps: List[Dict[str, Any]], caller_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Attach user summaries, and the caller-relative view when caller_id is given."""
        user_ids = set()
        for swap in swaps:
            user_ids.update((swap["requester_id"], swap["recipient_id"]))
        summaries = await self.users.summaries(user_ids)

        resolved = []
        for swap in swaps:
            item = {
                **swap,
                "requester": summaries.get(swap["requester_id"]),
                "recipient": summaries.get(swap["recipient_id"]),
            }
            if caller_id is not None:
                item["is_requester"] = swap["requester_id"] == str(caller_id)
                item["other_user"] = item["recipient"] if item["is_requester"] else item["requester"]
            resolved.append(item)
        return resolved

    async def create_swap(
        self,
        requester: Dict[str, Any],
        recipient_id: str,
        requester_skill: str,
        recipient_skill: str,
        message: Optional[str] = None,
        scheduled_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        requester_id = requester["id"]
        recipient_id = str(recipient_id)
        requester_skill = requester_skill.strip()
        recipient_skill = recipient_skill.strip()

        if not requester_skill or not recipient_skill:
            raise ValidationError("Both skills are required")
        if message and len(message) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")

        recipient = await self.users.find_by_id(recipient_id)
        if not recipient or recipient.get("banned"):
            raise NotFoundError("Recipient not found")

        if not recipient.get("is_public", True):
            raise ForbiddenError("Cannot send request to private profile")

        if recipient_id == requester_id:
            raise SelfReferenceError("Cannot send swap request to yourself")

        if requester_skill not in (requester.get("skills_offered") or []):
            raise ValidationError("You must have the skill you are offering in your skills offered list")

        if recipient_skill not in (recipient.get("skills_offered") or []):
            raise ValidationError("Recipient does not have the skill you are requesting")

        active = await self.store.count(
            SWAPS,
            filters={
                "$or": [
                    {"requester_id": requester_id, "recipient_id": recipient_id},
                    {"requester_id": recipient_id, "recipient_id": requester_id},
                ],
                "status": {"in": [status.value for status in ACTIVE_STATUSES]},
            },
        )
        if active:
            raise ConflictError("There is already an active swap request between you and this user")

        now = utcnow()
        swap_data = {
            "requester_id": requester_id,
            "recipient_id": recipient_id,
            "requester_skill": requester_skill,
            "recipient_skill": recipient_skill,
            "message": message,
            "scheduled_date": scheduled_date,
            "status": SwapStatus.PENDING.value,
            "active_pair_key": pair_key(requester_id, recipient_id),
            "completed_at": None,
            "cancelled_by": None,
            "cancellation_reason": None,
            "created_at": now,
            "updated_at": now,
        }

        try:
            swap = await self.store.insert(SWAPS, swap_data)
        except DuplicateKeyError:
            # Lost the race against a concurrent request for the same pair
            raise ConflictError("There is already an active swap request between you and this user")

        logger.info(f"Swap {swap['id']} created: {requester_id} -> {recipient_id}")

        await self.notifications.enqueue(
            recipient_id,
            NotificationType.SWAP_REQUEST,
            f"{requester.get('name') or 'A user'} sent you a swap request.",
            swap["id"],
        )

        return (await self._resolve([swap]))[0]

    async def get_swap(self, swap_id: str) -> Dict[str, Any]:
        swap = await self.store.get(SWAPS, str(swap_id))
        if not swap:
            raise NotFoundError("Swap request not found")
        return swap

    async def get_for_participant(self, swap_id: str, caller_id: str) -> Dict[str, Any]:
        swap = await self.get_swap(swap_id)
        if not is_participant(swap, caller_id):
            raise ForbiddenError("Not authorized to view this swap request")
        return (await self._resolve([swap], caller_id))[0]

    async def transition_swap(
        self,
        swap_id: str,
        caller_id: str,
        action: SwapAction,
        reason: Optional[str] = None,
    ) -> Dict[str, Any]:
        rule = TRANSITIONS[action]
        caller_id = str(caller_id)
        swap = await self.get_swap(swap_id)

        # Authorization is decided before state, so a wrong actor is always Forbidden
        if not is_participant(swap, caller_id):
            raise ForbiddenError(f"Not authorized to {action.value} this swap request")
        if rule.recipient_only and swap["recipient_id"] != caller_id:
            raise ForbiddenError(f"Only the recipient can {action.value} swap requests")

        if swap["status"] not in [status.value for status in rule.sources]:
            raise ConflictError(f"Cannot {action.value} a swap request that is {swap['status']}")

        now = utcnow()
        changes: Dict[str, Any] = {"status": rule.target.value, "updated_at": now}
        if rule.target not in ACTIVE_STATUSES:
            changes["active_pair_key"] = None

        if action == SwapAction.CANCEL:
            if reason is not None:
                reason = reason.strip() or None
            if reason and len(reason) > MAX_REASON_LENGTH:
                raise ValidationError(f"Reason cannot exceed {MAX_REASON_LENGTH} characters")
            changes["cancelled_by"] = caller_id
            changes["cancellation_reason"] = reason
        elif action == SwapAction.COMPLETE:
            changes["completed_at"] = now

        # Guarded write: only applies if the status is still one we allow
        updated = await self.store.update(
            SWAPS,
            filters={"id": swap["id"], "status": {"in": [status.value for status in rule.sources]}},
            data=changes,
        )
        if not updated:
            raise ConflictError("Swap request was modified by another request, please retry")

        swap = updated[0]
        logger.info(f"Swap {swap['id']} {action.value} by {caller_id}: now {swap['status']}")

        if action in (SwapAction.ACCEPT, SwapAction.REJECT):
            recipient = await self.users.find_by_id(swap["recipient_id"])
            name = (recipient or {}).get("name") or "A user"
            if action == SwapAction.ACCEPT:
                await self.notifications.enqueue(
                    swap["requester_id"],
                    NotificationType.SWAP_ACCEPTED,
                    f"{name} accepted your swap request!",
                    swap["id"],
                )
            else:
                await self.notifications.enqueue(
                    swap["requester_id"],
                    NotificationType.SWAP_REJECTED,
                    f"{name} rejected your swap request.",
                    swap["id"],
                )

        return (await self._resolve([swap], caller_id))[0]

    async def list_mine(
        self,
        caller_id: str,
        status: Optional[SwapStatus] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        caller_id = str(caller_id)
        filters: Dict[str, Any] = {
            "$or": [{"requester_id": caller_id}, {"recipient_id": caller_id}],
        }
        if status:
            filters["status"] = status.value

        swaps = await self.store.select(
            SWAPS, filters=filters, order_by={"created_at": "desc"}, limit=limit, offset=skip
        )
        return await self._resolve(swaps, caller_id)

    async def count_mine(self, caller_id: str, status: Optional[SwapStatus] = None) -> int:
        caller_id = str(caller_id)
        filters: Dict[str, Any] = {
            "$or": [{"requester_id": caller_id}, {"recipient_id": caller_id}],
        }
        if status:
            filters["status"] = status.value
        return await self.store.count(SWAPS, filters=filters)

    async def list_all(self, status: Optional[SwapStatus] = None, skip: int = 0, limit: int = 20) -> List[Dict[str, Any]]:
        filters = {"status": status.value} if status else None
        swaps = await self.store.select(
            SWAPS, filters=filters, order_by={"created_at": "desc"}, limit=limit, offset=skip
        )
        return await self._resolve(swaps)

    async def delete_swap(self, swap_id: str) -> None:
        """Remove a swap with its feedback and recompute both participants' ratings."""
        swap = await self.get_swap(swap_id)
        removed = await self.store.delete(FEEDBACK, filters={"swap_request_id": swap["id"]})
        await self.store.update(
            "notifications", filters={"swap_request_id": swap["id"]}, data={"swap_request_id": None}
        )
        await self.store.delete(SWAPS, filters={"id": swap["id"]})
        logger.warning(f"Swap {swap['id']} deleted by moderation with {len(removed)} feedback")

        for user_id in (swap["requester_id"], swap["recipient_id"]):
            await self.users.refresh_rating(user_id)


def get_swap_service(store: DocumentStore = Depends(get_store)) -> SwapService:
    return SwapService(store, UserService(store), NotificationService(store))
