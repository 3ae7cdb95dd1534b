from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..core.constants import LOCAL_STORAGE_KEYS
from ..core.exceptions import StoreError
from .store import Query

logger = logging.getLogger(__name__)


def _norm(value: Any) -> Any:
    # Rows round-trip through JSON, so ids may come back as str or int.
    if value is None or isinstance(value, bool):
        return value
    return str(value)


def _comparable(value: Any):
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    try:
        return (0, float(value))
    except (TypeError, ValueError):
        return (1, str(value))


def _matches(row: Dict[str, Any], query: Query) -> bool:
    for col, value in query.equals.items():
        if _norm(row.get(col)) != _norm(value):
            return False
    for col, value in query.not_equals.items():
        if _norm(row.get(col)) == _norm(value):
            return False
    for col in query.null_fields:
        if row.get(col) is not None:
            return False
    for col, values in query.in_lists.items():
        if _norm(row.get(col)) not in {_norm(v) for v in values}:
            return False
    for col, value in query.greater_than.items():
        if row.get(col) is None or not _comparable(row[col]) > _comparable(value):
            return False
    for col, value in query.at_least.items():
        if row.get(col) is None or str(row[col]) < str(value):
            return False
    for col, value in query.at_most.items():
        if row.get(col) is None or str(row[col]) > str(value):
            return False
    for col, prefix in query.prefixes.items():
        if not str(row.get(col) or "").strip().casefold().startswith(prefix.casefold()):
            return False
    for col, value in query.iequals.items():
        if str(row.get(col) or "").strip().casefold() != value.casefold():
            return False
    return True


class LocalTableStore:
    """Offline fallback: JSON arrays stored under ``app.<table>`` keys in one file.

    With ``path=None`` the data lives only in memory (used by tests and when no
    writable location is configured).
    """

    backend_name = "local"

    def __init__(self, path: Optional[str | Path] = None):
        self._path = Path(path) if path else None
        self._lock = threading.Lock()
        self._memory: Dict[str, List[Dict[str, Any]]] = {}

    def _key(self, table: str) -> str:
        return LOCAL_STORAGE_KEYS.get(table, f"app.{table}")

    def _load(self) -> Dict[str, List[Dict[str, Any]]]:
        if self._path is None:
            return self._memory
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, ValueError) as e:
            logger.warning("Local store %s unreadable, starting empty: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        if self._path is None:
            self._memory = data
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
        except OSError as e:
            raise StoreError(f"Cannot write local store {self._path}: {e}") from e

    def select(self, table: str, query: Optional[Query] = None) -> List[Dict[str, Any]]:
        query = query or Query()
        with self._lock:
            rows = list(self._load().get(self._key(table), []))

        result = [dict(r) for r in rows if _matches(r, query)]
        if query.order_by:
            col = query.order_by
            result.sort(
                key=lambda r: (r.get(col) is None, _comparable(r.get(col)) if r.get(col) is not None else (0, 0)),
                reverse=query.descending,
            )
        if query.limit_to is not None:
            result = result[: query.limit_to]
        return result

    def insert(self, table: str, row: Dict[str, Any]) -> List[Dict[str, Any]]:
        key = self._key(table)
        with self._lock:
            data = self._load()
            rows = data.setdefault(key, [])
            ids = [_comparable(r.get("id")) for r in rows if r.get("id") is not None]
            next_id = max((v for kind, v in ids if kind == 0), default=0) + 1
            to_insert = {"id": int(next_id), **row}
            rows.append(to_insert)
            self._save(data)
        return [dict(to_insert)]

    def update(self, table: str, values: Dict[str, Any], query: Query) -> List[Dict[str, Any]]:
        key = self._key(table)
        updated: List[Dict[str, Any]] = []
        with self._lock:
            data = self._load()
            for row in data.get(key, []):
                if _matches(row, query):
                    row.update(values)
                    updated.append(dict(row))
            if updated:
                self._save(data)
        return updated

    def ping(self) -> bool:
        return True
