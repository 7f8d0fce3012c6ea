from typing import Optional, Dict, Any, Iterable, List
from datetime import datetime
import logging

from supabase import create_client, Client
from postgrest.exceptions import APIError

from .config import Settings
from .exceptions import DuplicateKeyError
from .store import DocumentStore

logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"
MAX_ROWS = 10000

def serialize(data: Dict[str, Any]) -> Dict[str, Any]:
    """Make a row JSON-serializable for PostgREST."""
    serialized_data = {}
    for key, value in data.items():
        if isinstance(value, datetime):
            serialized_data[key] = value.isoformat()
        elif isinstance(value, list):
            serialized_data[key] = [
                item.isoformat() if isinstance(item, datetime) else item
                for item in value
            ]
        else:
            serialized_data[key] = value
    return serialized_data

def _format_value(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)

def _quote(value: Any) -> str:
    """Double-quote a value so commas, dots and parentheses stay inside it."""
    text = _format_value(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'

def _list_literal(values: Iterable[Any]) -> str:
    return f"({','.join(_quote(v) for v in values)})"

def _array_literal(values: Iterable[Any]) -> str:
    return f"{{{','.join(_quote(v) for v in values)}}}"

def _condition(key: str, value: Any) -> str:
    """Render one filter as a PostgREST logic-tree condition, e.g. status.in.("a","b")."""
    if not isinstance(value, dict):
        if value is None:
            return f"{key}.is.null"
        return f"{key}.eq.{_quote(value)}"

    operator, operand = next(iter(value.items()))
    if operator == "in":
        return f"{key}.in.{_list_literal(operand)}"
    if operator == "contains":
        return f"{key}.cs.{_array_literal(operand)}"
    if operator in ("eq", "neq", "ilike"):
        return f"{key}.{operator}.{_quote(operand)}"
    raise ValueError(f"Unsupported filter operator: {operator}")

def _or_clause(options: List[Dict[str, Any]]) -> str:
    parts = []
    for option in options:
        conditions = [_condition(key, value) for key, value in option.items()]
        if len(conditions) == 1:
            parts.append(conditions[0])
        else:
            parts.append(f"and({','.join(conditions)})")
    return ",".join(parts)

def apply_filters(query, filters: Optional[Dict[str, Any]]):
    """Translate a store filter dict onto a postgrest query builder."""
    if not filters:
        return query

    for key, value in filters.items():
        if key == "$or":
            query = query.or_(_or_clause(value))
        elif isinstance(value, dict):
            operator, operand = next(iter(value.items()))
            if operator == "eq":
                query = query.eq(key, _format_value(operand))
            elif operator == "neq":
                query = query.neq(key, _format_value(operand))
            elif operator == "in":
                query = query.filter(key, "in", _list_literal(operand))
            elif operator == "ilike":
                query = query.ilike(key, operand)
            elif operator == "contains":
                query = query.filter(key, "cs", _array_literal(operand))
            else:
                raise ValueError(f"Unsupported filter operator: {operator}")
        elif value is None:
            query = query.is_(key, "null")
        else:
            query = query.eq(key, _format_value(value))
    return query


class SupabaseStore(DocumentStore):
    """Document store backed by Supabase (PostgREST)."""

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupabaseStore":
        if not settings.supabase_url or not settings.supabase_key:
            raise ValueError(
                "SUPABASE_URL and SUPABASE_KEY must be set in environment variables"
            )
        logger.info(f"Supabase URL: {settings.supabase_url}")
        return cls(create_client(settings.supabase_url, settings.supabase_key))

    def _execute(self, table: str, query_type: str, query):
        try:
            return query.execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                logger.info(f"Unique violation on {table}: {e.message}")
                raise DuplicateKeyError(table, e.details or "") from e
            logger.error(f"Error executing {query_type} on table {table}: {e.message}")
            raise

    async def select(
        self,
        table: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[Dict[str, str]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        query = apply_filters(self.client.table(table).select("*"), filters)

        for key, direction in (order_by or {}).items():
            query = query.order(key, desc=direction.lower() == "desc")

        if limit is not None:
            query = query.range(offset, offset + limit - 1)
        elif offset:
            query = query.range(offset, offset + MAX_ROWS - 1)

        return self._execute(table, "select", query).data

    async def count(self, table: str, filters: Optional[Dict[str, Any]] = None) -> int:
        query = apply_filters(self.client.table(table).select("id", count="exact"), filters)
        result = self._execute(table, "count", query)
        return result.count or 0

    async def insert(self, table: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data:
            raise ValueError("Data is required for insert operations")

        result = self._execute(table, "insert", self.client.table(table).insert(serialize(data)))
        if not result.data:
            raise RuntimeError(f"Insert into {table} returned no rows")
        return result.data[0]

    async def update(
        self, table: str, filters: Dict[str, Any], data: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        if not data:
            raise ValueError("Data is required for update operations")
        if not filters:
            raise ValueError("Filters are required for update operations")

        # Single PATCH; rows failing the guard are not returned
        query = apply_filters(self.client.table(table).update(serialize(data)), filters)
        return self._execute(table, "update", query).data

    async def delete(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not filters:
            raise ValueError("Filters are required for delete operations")

        query = apply_filters(self.client.table(table).delete(), filters)
        return self._execute(table, "delete", query).data

    async def rpc(self, function: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        query = self.client.rpc(function, serialize(params))
        return self._execute(function, "rpc", query).data or []
