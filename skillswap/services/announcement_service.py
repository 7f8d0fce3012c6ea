from typing import Any, Dict, List
import logging

from fastapi import Depends

from ..core.store import DocumentStore, get_store
from ..utils.timestamps import utcnow
from .user_service import UserService

logger = logging.getLogger(__name__)

ANNOUNCEMENTS = "announcements"


class AnnouncementService:
    def __init__(self, store: DocumentStore, users: UserService):
        self.store = store
        self.users = users

    async def create(self, author: Dict[str, Any], title: str, content: str) -> Dict[str, Any]:
        announcement = await self.store.insert(
            ANNOUNCEMENTS,
            {"title": title, "content": content, "created_by": author["id"], "created_at": utcnow()},
        )
        logger.info(f"Announcement {announcement['id']} posted by {author['id']}")
        return {**announcement, "author": (await self.users.summaries([author["id"]])).get(author["id"])}

    async def list(self, skip: int = 0, limit: int = 20) -> List[Dict[str, Any]]:
        items = await self.store.select(
            ANNOUNCEMENTS, order_by={"created_at": "desc"}, limit=limit, offset=skip
        )
        authors = await self.users.summaries(item["created_by"] for item in items if item.get("created_by"))
        return [{**item, "author": authors.get(item.get("created_by"))} for item in items]


def get_announcement_service(store: DocumentStore = Depends(get_store)) -> AnnouncementService:
    return AnnouncementService(store, UserService(store))
