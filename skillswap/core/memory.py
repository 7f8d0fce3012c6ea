import copy
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .exceptions import DuplicateKeyError
from .store import DocumentStore, UNIQUE_KEYS
from ..utils.ratings import average_rating


def _serialize(value: Any) -> Any:
    # Mirror what comes back from PostgREST: datetimes as ISO strings
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return value


def _like(pattern: str, value: Any) -> bool:
    """SQL ILIKE: % matches any run of characters, _ exactly one."""
    if value is None:
        return False
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.fullmatch("".join(parts), str(value), re.IGNORECASE | re.DOTALL) is not None


def matches(item: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """Check a row against a filter dict (see DocumentStore for the syntax)."""
    if not filters:
        return True

    for key, value in filters.items():
        if key == "$or":
            if not any(matches(item, option) for option in value):
                return False
            continue

        current = item.get(key)
        if isinstance(value, dict):
            operator, operand = next(iter(value.items()))
            operand = _serialize(operand)
            if operator == "eq" and current != operand:
                return False
            elif operator == "neq" and current == operand:
                return False
            elif operator == "in" and current not in operand:
                return False
            elif operator == "ilike" and not _like(operand, current):
                return False
            elif operator == "contains" and not all(v in (current or []) for v in operand):
                return False
            elif operator not in ("eq", "neq", "in", "ilike", "contains"):
                raise ValueError(f"Unsupported filter operator: {operator}")
        elif current != _serialize(value):
            return False

    return True


class MemoryStore(DocumentStore):
    """In-process store used for local development and tests."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def _check_unique(self, table: str, row: Dict[str, Any], ignore: Optional[Dict[str, Any]] = None):
        for columns in UNIQUE_KEYS.get(table, []):
            values = tuple(row.get(column) for column in columns)
            if any(value is None for value in values):
                continue
            for existing in self._rows(table):
                if existing is ignore:
                    continue
                if tuple(existing.get(column) for column in columns) == values:
                    raise DuplicateKeyError(table, ",".join(columns))

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[Dict[str, str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        result = [row for row in self._rows(table) if matches(row, filters)]

        if order_by:
            # Sort by the least significant key first so earlier keys win
            for key, direction in reversed(list(order_by.items())):
                reverse = direction.lower() == "desc"
                present = [row for row in result if row.get(key) is not None]
                missing = [row for row in result if row.get(key) is None]
                present.sort(key=lambda row: row[key], reverse=reverse)
                result = present + missing

        result = result[offset:]
        if limit is not None:
            result = result[:limit]
        return copy.deepcopy(result)

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        return sum(1 for row in self._rows(table) if matches(row, filters))

    async def insert(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now(timezone.utc).isoformat()
        row = _serialize(dict(data))
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)

        self._check_unique(table, row)
        self._rows(table).append(row)
        return copy.deepcopy(row)

    async def update(
        self, table: str, filters: Dict[str, Any], data: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("Filters are required for update operations")

        changes = _serialize(dict(data))
        targets = [row for row in self._rows(table) if matches(row, filters)]

        # Validate every row before touching any so the update is all-or-nothing
        for row in targets:
            self._check_unique(table, {**row, **changes}, ignore=row)
        for row in targets:
            row.update(changes)
        return copy.deepcopy(targets)

    async def delete(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("Filters are required for delete operations")

        rows = self._rows(table)
        removed = [row for row in rows if matches(row, filters)]
        self.tables[table] = [row for row in rows if not matches(row, filters)]
        return copy.deepcopy(removed)

    async def rpc(self, function: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        handler = getattr(self, f"_rpc_{function}", None)
        if handler is None:
            raise ValueError(f"Unknown database function: {function}")
        return copy.deepcopy(handler(**_serialize(dict(params))))

    # Synchronous bodies, so each call completes without yielding to the loop

    def _rpc_refresh_user_rating(self, target_user_id: str) -> List[Dict[str, Any]]:
        ratings = [row["rating"] for row in self._rows("feedback") if row.get("to_user_id") == target_user_id]
        updated = []
        for row in self._rows("users"):
            if row["id"] == target_user_id:
                row.update({"rating": average_rating(ratings), "total_ratings": len(ratings)})
                updated.append(row)
        return updated

    def _rpc_skill_suggestions(self, search: str) -> List[Dict[str, Any]]:
        needle = search.lower()
        skills = set()
        for row in self._rows("users"):
            if not row.get("is_public", True) or row.get("banned"):
                continue
            for skill in (row.get("skills_offered") or []) + (row.get("skills_wanted") or []):
                if needle in skill.lower():
                    skills.add(skill)
        return [{"skill": skill} for skill in sorted(skills)]
