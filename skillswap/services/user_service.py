from typing import Any, Dict, Iterable, List, Optional
import logging

from fastapi import Depends

from ..core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..core.store import DocumentStore, get_store
from ..schemas.user import UserRole
from ..utils.timestamps import utcnow

logger = logging.getLogger(__name__)

USERS = "users"
ROLE_GRANTS = "role_grants"

PUBLIC_FIELDS = (
    "id", "name", "location", "profile_photo_url", "bio", "skills_offered",
    "skills_wanted", "availability", "rating", "total_ratings", "created_at",
)
PRIVATE_FIELDS = PUBLIC_FIELDS + ("email", "role", "is_public")

def summary(user: Dict[str, Any]) -> Dict[str, Any]:
    """The only view of a user that is ever embedded in another user's data."""
    return {
        "id": user["id"],
        "name": user.get("name") or "",
        "profile_photo_url": user.get("profile_photo_url"),
    }

def _clean_skills(skills: Iterable[str]) -> List[str]:
    cleaned = []
    for skill in skills:
        skill = skill.strip()
        if skill and skill not in cleaned:
            cleaned.append(skill)
    return cleaned


class UserService:
    """User directory: profile lookup, moderation flags and rating aggregates."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def find_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get(USERS, str(user_id))

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        user = await self.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    async def summaries(self, user_ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
        ids = sorted({str(user_id) for user_id in user_ids})
        if not ids:
            return {}
        users = await self.store.select(USERS, filters={"id": {"in": ids}})
        return {user["id"]: summary(user) for user in users}

    async def get_profile(self, user_id: str, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Profile as seen by viewer_id.

        Banned users look like they don't exist. Private profiles are visible to
        their owner only, and only the owner sees email, role and visibility.
        """
        user = await self.find_by_id(user_id)
        if not user or user.get("banned"):
            raise NotFoundError("User not found")

        is_own = viewer_id is not None and str(viewer_id) == user["id"]
        if not user.get("is_public", True) and not is_own:
            raise ForbiddenError("This profile is private")

        fields = PRIVATE_FIELDS if is_own else PUBLIC_FIELDS
        return {field: user.get(field) for field in fields if user.get(field) is not None}

    async def upsert_profile(self, user_id: str, email: Optional[str], changes: Dict[str, Any]) -> Dict[str, Any]:
        """Create the caller's profile on first write, update it afterwards."""
        for key in ("skills_offered", "skills_wanted"):
            if changes.get(key) is not None:
                changes[key] = _clean_skills(changes[key])

        now = utcnow()
        existing = await self.find_by_id(user_id)
        if existing:
            if not changes:
                return existing
            updated = await self.store.update(
                USERS, filters={"id": existing["id"]}, data={**changes, "updated_at": now}
            )
            return updated[0]

        if not changes.get("name"):
            raise ValidationError("Name is required to create a profile")

        user_data = {
            "id": str(user_id),
            "email": email,
            "name": changes["name"],
            "location": changes.get("location"),
            "bio": changes.get("bio"),
            "profile_photo_url": None,
            "skills_offered": changes.get("skills_offered") or [],
            "skills_wanted": changes.get("skills_wanted") or [],
            "availability": changes.get("availability") or [],
            "is_public": changes["is_public"] if changes.get("is_public") is not None else True,
            "role": UserRole.USER.value,
            "banned": False,
            "ban_reason": None,
            "rating": 0.0,
            "total_ratings": 0,
            "created_at": now,
            "updated_at": now,
        }
        logger.info(f"Creating profile for user {user_id}")
        return await self.store.insert(USERS, user_data)

    async def search(
        self,
        skill: Optional[str] = None,
        availability: Optional[List[str]] = None,
        location: Optional[str] = None,
        exclude_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {"is_public": True, "banned": False}

        if skill:
            filters["$or"] = [
                {"skills_offered": {"contains": [skill]}},
                {"skills_wanted": {"contains": [skill]}},
            ]
        if location:
            filters["location"] = {"ilike": f"%{location}%"}
        if exclude_id:
            filters["id"] = {"neq": str(exclude_id)}

        order_by = {"rating": "desc", "total_ratings": "desc"}
        if not availability:
            users = await self.store.select(USERS, filters=filters, order_by=order_by, limit=limit, offset=skip)
        else:
            # Any of the requested slots matches; only one "$or" fits in a query
            wanted = set(availability)
            users = await self.store.select(USERS, filters=filters, order_by=order_by)
            users = [user for user in users if wanted & set(user.get("availability") or [])]
            users = users[skip:skip + limit]

        return [{field: user.get(field) for field in PUBLIC_FIELDS} for user in users]

    async def list_users(
        self,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        banned: Optional[bool] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> List[Dict[str, Any]]:
        filters: Dict[str, Any] = {}
        if search:
            pattern = f"%{search}%"
            filters["$or"] = [
                {"name": {"ilike": pattern}},
                {"email": {"ilike": pattern}},
                {"location": {"ilike": pattern}},
            ]
        if role:
            filters["role"] = role.value
        if banned is not None:
            filters["banned"] = banned

        return await self.store.select(
            USERS, filters=filters, order_by={"created_at": "desc"}, limit=limit, offset=skip
        )

    async def set_banned(self, admin: Dict[str, Any], user_id: str, banned: bool, reason: Optional[str] = None) -> Dict[str, Any]:
        user = await self.get_user(user_id)
        if banned and user.get("role") == UserRole.ADMIN.value:
            raise ForbiddenError("Cannot ban other administrators")

        updated = await self.store.update(
            USERS,
            filters={"id": user["id"]},
            data={"banned": banned, "ban_reason": reason if banned else None, "updated_at": utcnow()},
        )
        logger.info(f"Admin {admin['id']} set banned={banned} on user {user['id']}")
        return updated[0]

    async def grant_role(self, admin: Optional[Dict[str, Any]], user_id: str, role: UserRole) -> Dict[str, Any]:
        """
        Change a user's role and record the grant in the audit table.

        admin is None only for the operator bootstrap command, which creates the
        first administrator.
        """
        user = await self.get_user(user_id)
        if admin is not None:
            if admin.get("role") != UserRole.ADMIN.value:
                raise ForbiddenError("Admin access required")
            if admin["id"] == user["id"] and role != UserRole.ADMIN:
                raise ForbiddenError("Administrators cannot demote themselves")

        old_role = user.get("role") or UserRole.USER.value
        updated = await self.store.update(
            USERS, filters={"id": user["id"]}, data={"role": role.value, "updated_at": utcnow()}
        )
        await self.store.insert(
            ROLE_GRANTS,
            {
                "user_id": user["id"],
                "granted_by": admin["id"] if admin else None,
                "old_role": old_role,
                "new_role": role.value,
                "created_at": utcnow(),
            },
        )
        logger.warning(
            f"Role change for user {user['id']}: {old_role} -> {role.value} "
            f"(granted by {admin['id'] if admin else 'operator'})"
        )
        return updated[0]

    async def role_grants(self, user_id: Optional[str] = None, skip: int = 0, limit: int = 20) -> List[Dict[str, Any]]:
        filters = {"user_id": str(user_id)} if user_id else None
        return await self.store.select(
            ROLE_GRANTS, filters=filters, order_by={"created_at": "desc"}, limit=limit, offset=skip
        )

    async def update_skills(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        user = await self.get_user(user_id)
        for key in ("skills_offered", "skills_wanted"):
            if changes.get(key) is not None:
                changes[key] = _clean_skills(changes[key])
        if not changes:
            return user

        updated = await self.store.update(
            USERS, filters={"id": user["id"]}, data={**changes, "updated_at": utcnow()}
        )
        return updated[0]

    async def refresh_rating(self, user_id: str) -> Optional[Dict[str, Any]]:
        """
        Recompute a user's rating aggregate from every feedback they received.

        Average and count are computed and written in one database call.
        """
        rows = await self.store.rpc("refresh_user_rating", {"target_user_id": str(user_id)})
        if not rows:
            return None
        logger.debug(f"Rating for user {user_id} is now {rows[0]['rating']} over {rows[0]['total_ratings']}")
        return rows[0]

    async def suggest_skills(self, query: str, limit: int = 10) -> List[str]:
        """Distinct skills containing query, prefix matches first."""
        query = (query or "").strip()
        if len(query) < 2:
            return []

        rows = await self.store.rpc("skill_suggestions", {"search": query})
        needle = query.lower()
        skills = sorted(
            {row["skill"] for row in rows},
            key=lambda skill: (not skill.lower().startswith(needle), skill.lower()),
        )
        return skills[:limit]

    async def delete_account(self, user_id: str, caller_id: str) -> None:
        """
        Delete the caller's own profile with their swaps, feedback and inbox.

        Everyone who lost feedback with the account gets their rating recomputed.
        """
        if str(user_id) != str(caller_id):
            raise ForbiddenError("You can only delete your own account")
        user = await self.get_user(user_id)
        uid = user["id"]

        swaps = await self.store.select(
            "swap_requests", filters={"$or": [{"requester_id": uid}, {"recipient_id": uid}]}
        )
        swap_ids = [swap["id"] for swap in swaps]
        affected = set()
        if swap_ids:
            removed = await self.store.delete("feedback", filters={"swap_request_id": {"in": swap_ids}})
            affected.update(item["to_user_id"] for item in removed)
            await self.store.update(
                "notifications", filters={"swap_request_id": {"in": swap_ids}}, data={"swap_request_id": None}
            )
            await self.store.delete("swap_requests", filters={"id": {"in": swap_ids}})

        await self.store.delete("notifications", filters={"user_id": uid})
        await self.store.delete(ROLE_GRANTS, filters={"user_id": uid})
        await self.store.update(ROLE_GRANTS, filters={"granted_by": uid}, data={"granted_by": None})
        await self.store.update("announcements", filters={"created_by": uid}, data={"created_by": None})
        await self.store.delete(USERS, filters={"id": uid})
        logger.warning(f"Account {uid} deleted with {len(swap_ids)} swaps")

        affected.discard(uid)
        for ratee_id in sorted(affected):
            await self.refresh_rating(ratee_id)

    async def bootstrap_admin(self, user_id: str) -> Dict[str, Any]:
        """Operator-only first admin grant; refused once any admin exists."""
        if await self.store.count(USERS, filters={"role": UserRole.ADMIN.value}):
            raise ConflictError("An administrator already exists, grant further roles through the admin API")
        return await self.grant_role(None, user_id, UserRole.ADMIN)


def get_user_service(store: DocumentStore = Depends(get_store)) -> UserService:
    return UserService(store)
