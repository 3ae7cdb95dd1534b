from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence


@dataclass
class Query:
    """Backend-neutral selection: filters, ordering and limit.

    Builder methods mutate and return ``self`` so queries read like the
    PostgREST chains they are translated into::

        Query().eq("archived", False).ilike_prefix("rfid", "STU").limit(2)
    """

    equals: Dict[str, Any] = field(default_factory=dict)
    not_equals: Dict[str, Any] = field(default_factory=dict)
    null_fields: List[str] = field(default_factory=list)
    in_lists: Dict[str, List[Any]] = field(default_factory=dict)
    greater_than: Dict[str, Any] = field(default_factory=dict)
    at_least: Dict[str, Any] = field(default_factory=dict)
    at_most: Dict[str, Any] = field(default_factory=dict)
    prefixes: Dict[str, str] = field(default_factory=dict)
    iequals: Dict[str, str] = field(default_factory=dict)
    order_by: Optional[str] = None
    descending: bool = False
    limit_to: Optional[int] = None

    def eq(self, column: str, value: Any) -> "Query":
        self.equals[column] = value
        return self

    def neq(self, column: str, value: Any) -> "Query":
        self.not_equals[column] = value
        return self

    def is_null(self, column: str) -> "Query":
        self.null_fields.append(column)
        return self

    def in_(self, column: str, values: Sequence[Any]) -> "Query":
        self.in_lists[column] = list(values)
        return self

    def gt(self, column: str, value: Any) -> "Query":
        self.greater_than[column] = value
        return self

    def gte(self, column: str, value: Any) -> "Query":
        self.at_least[column] = value
        return self

    def lte(self, column: str, value: Any) -> "Query":
        self.at_most[column] = value
        return self

    def ilike_prefix(self, column: str, prefix: str) -> "Query":
        """Case-insensitive 'starts with' match."""
        self.prefixes[column] = prefix
        return self

    def ilike_exact(self, column: str, value: str) -> "Query":
        """Case-insensitive equality."""
        self.iequals[column] = value
        return self

    def order(self, column: str, *, desc: bool = False) -> "Query":
        self.order_by = column
        self.descending = desc
        return self

    def limit(self, count: int) -> "Query":
        self.limit_to = int(count)
        return self


class TableStore(Protocol):
    """Storage capability shared by the hosted store and the local fallback.

    Rows are plain dicts of JSON-compatible values. Failures raise
    ``StoreError``.
    """

    backend_name: str

    def select(self, table: str, query: Optional[Query] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def insert(self, table: str, row: Dict[str, Any]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def update(self, table: str, values: Dict[str, Any], query: Query) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError
