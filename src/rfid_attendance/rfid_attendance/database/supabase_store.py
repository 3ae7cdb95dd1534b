from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import Client, ClientOptions, create_client

from ..core.constants import DEFAULT_REMOTE_TIMEOUT_SECONDS, TABLE_RFID_SCANS
from ..core.exceptions import StoreError
from .store import Query

logger = logging.getLogger(__name__)


@dataclass
class SupabaseConfig:
    url: str
    key: str
    timeout: int = DEFAULT_REMOTE_TIMEOUT_SECONDS


def _escape_like(value: str) -> str:
    # '%' and '_' are LIKE wildcards; tags may legitimately contain '_'.
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


class SupabaseTableStore:
    """Hosted table store reached through the Supabase (PostgREST) client."""

    backend_name = "remote"

    def __init__(self, client: Client):
        self._client = client

    @classmethod
    def connect(cls, config: SupabaseConfig) -> "SupabaseTableStore":
        options = ClientOptions(postgrest_client_timeout=int(config.timeout))
        try:
            client = create_client(config.url, config.key, options=options)
        except Exception as e:
            # create_client rejects malformed URLs and keys before any request is made.
            raise StoreError(f"Cannot create Supabase client: {e}") from e
        logger.info("Supabase client initialised -> %s", config.url)
        return cls(client)

    def _apply_filters(self, builder, query: Query):
        for col, value in query.equals.items():
            builder = builder.eq(col, _value(value))
        for col, value in query.not_equals.items():
            builder = builder.neq(col, _value(value))
        for col in query.null_fields:
            builder = builder.is_(col, "null")
        for col, values in query.in_lists.items():
            builder = builder.in_(col, [_value(v) for v in values])
        for col, value in query.greater_than.items():
            builder = builder.gt(col, _value(value))
        for col, value in query.at_least.items():
            builder = builder.gte(col, _value(value))
        for col, value in query.at_most.items():
            builder = builder.lte(col, _value(value))
        for col, prefix in query.prefixes.items():
            builder = builder.ilike(col, _escape_like(prefix) + "%")
        for col, value in query.iequals.items():
            builder = builder.ilike(col, _escape_like(value))
        return builder

    def _execute(self, builder, *, action: str, table: str) -> List[Dict[str, Any]]:
        try:
            response = builder.execute()
        except APIError as e:
            raise StoreError(f"{action} {table} failed: {e.message}", code=e.code) from e
        except httpx.HTTPError as e:
            raise StoreError(f"{action} {table} failed: {e}") from e
        data = response.data
        return list(data) if isinstance(data, list) else ([data] if data else [])

    def select(self, table: str, query: Optional[Query] = None) -> List[Dict[str, Any]]:
        query = query or Query()
        builder = self._apply_filters(self._client.table(table).select("*"), query)
        if query.order_by:
            builder = builder.order(query.order_by, desc=query.descending)
        if query.limit_to is not None:
            builder = builder.limit(query.limit_to)
        return self._execute(builder, action="select", table=table)

    def insert(self, table: str, row: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._execute(self._client.table(table).insert(row), action="insert", table=table)

    def update(self, table: str, values: Dict[str, Any], query: Query) -> List[Dict[str, Any]]:
        builder = self._apply_filters(self._client.table(table).update(values), query)
        return self._execute(builder, action="update", table=table)

    def ping(self) -> bool:
        try:
            self.select(TABLE_RFID_SCANS, Query().limit(1))
        except StoreError as e:
            logger.error("Connection check failed: %s", e)
            return False
        return True
