from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Set, Union

from ..common.datetime_utils import now_local, to_iso
from ..core.constants import TABLE_RFID_SCANS, UNDEFINED_COLUMN_CODE
from ..core.exceptions import StoreError
from ..database.store import Query, TableStore
from .model import RawScan
from .repository import ScanRepository

logger = logging.getLogger(__name__)


def _to_scan(row: Dict[str, Any]) -> RawScan:
    return RawScan(
        scan_id=row.get("id"),
        tag=str(row.get("rfid_tag") or row.get("rfid") or "").strip(),
        scanned_at=row.get("scanned_at") or row.get("created_at"),
        processed=bool(row.get("processed", False)),
        student_id=row.get("student_id"),
    )


class TableScanRepository(ScanRepository):
    """``rfid_scans`` access tolerant of schema drift.

    Some deployments created the table without an ``id`` column; queries that
    fail with the undefined-column code fall back to ``created_at`` ordering
    and ``(rfid_tag, scanned_at)`` identification.
    """

    def __init__(self, store: TableStore, *, clock=now_local):
        self._store = store
        self._clock = clock

    def record(
        self, tag: str, *, student_id: Optional[Union[int, str]] = None, processed: bool = False
    ) -> RawScan:
        row: Dict[str, Any] = {"rfid_tag": tag, "scanned_at": to_iso(self._clock()), "processed": processed}
        if student_id is not None:
            row["student_id"] = student_id
        inserted = self._store.insert(TABLE_RFID_SCANS, row)
        return _to_scan(inserted[0] if inserted else row)

    def fetch_new(self, after_id: Union[int, str, None] = None) -> Sequence[RawScan]:
        query = Query().eq("processed", False).order("id")
        if after_id is not None:
            query.gt("id", after_id)
        try:
            rows = self._store.select(TABLE_RFID_SCANS, query)
        except StoreError as e:
            if e.code != UNDEFINED_COLUMN_CODE:
                raise
            logger.warning("id column not found in rfid_scans, using created_at ordering")
            rows = self._store.select(TABLE_RFID_SCANS, Query().eq("processed", False).order("created_at"))
        return [_to_scan(r) for r in rows]

    def mark_processed(self, scan: RawScan) -> bool:
        if scan.scan_id not in (None, "", "undefined", "null"):
            query = Query().eq("id", scan.scan_id)
        elif scan.tag and scan.scanned_at:
            query = Query().eq("rfid_tag", scan.tag).eq("scanned_at", scan.scanned_at)
        else:
            logger.error("Cannot mark scan processed, no usable identifier for scan %r", scan)
            return False
        return bool(self._store.update(TABLE_RFID_SCANS, {"processed": True}, query))

    def tags_scanned_between(self, start: datetime, end: datetime) -> Set[str]:
        query = Query().gte("scanned_at", to_iso(start)).lte("scanned_at", to_iso(end))
        return {scan.tag for scan in map(_to_scan, self._store.select(TABLE_RFID_SCANS, query)) if scan.tag}
