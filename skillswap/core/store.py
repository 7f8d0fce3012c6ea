from typing import Any, Dict, List, Optional
from functools import lru_cache
import logging

from .config import get_settings

logger = logging.getLogger(__name__)

# Tables and the column sets that must stay unique. NULL values never collide,
# matching Postgres unique index semantics.
UNIQUE_KEYS: Dict[str, List[tuple]] = {
    "users": [("id",)],
    "swap_requests": [("id",), ("active_pair_key",)],
    "feedback": [("id",), ("swap_request_id", "from_user_id")],
    "notifications": [("id",)],
    "announcements": [("id",)],
    "role_grants": [("id",)],
}


class DocumentStore:
    """
    Async interface over the document tables.

    Filters are a dict of column -> value. A plain value means equality; a dict
    value selects an operator: {"in": [...]}, {"neq": v}, {"ilike": "%x%"},
    {"contains": [...]} (array column contains all given items). The special
    key "$or" takes a list of filter dicts, any of which may match.
    """

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[Dict[str, str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        raise NotImplementedError

    async def insert(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def update(
        self, table: str, filters: Dict[str, Any], data: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Apply data to every matching row in one step and return the updated rows."""
        raise NotImplementedError

    async def delete(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def rpc(self, function: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Call a database function that does its work in a single statement.

        Functions: refresh_user_rating(target_user_id) returns the updated user row,
        skill_suggestions(search) returns {"skill": ...} rows.
        """
        raise NotImplementedError

    async def get(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        rows = await self.select(table, filters={"id": row_id}, limit=1)
        return rows[0] if rows else None


@lru_cache()
def get_store() -> DocumentStore:
    """Return the configured store. Overridden in tests via dependency_overrides."""
    settings = get_settings()
    backend = settings.store_backend.lower()
    logger.info(f"Using {backend} document store")

    if backend == "memory":
        from .memory import MemoryStore
        return MemoryStore()
    if backend == "supabase":
        from .supabase import SupabaseStore
        return SupabaseStore.from_settings(settings)

    raise ValueError(f"Invalid store backend: {settings.store_backend}")
