from __future__ import annotations

from typing import Any, Dict, Sequence

from ..common.datetime_utils import now_local, parse_timestamp_or, to_iso
from ..core.constants import TABLE_NOTIFICATIONS
from ..database.store import Query, TableStore
from .model import NotificationRecord
from .repository import NotificationRepository


def _to_notification(row: Dict[str, Any]) -> NotificationRecord:
    return NotificationRecord(
        notification_id=row.get("id"),
        student_tag=row.get("student_rfid"),
        student_name=str(row.get("student_name") or ""),
        parent_phone=row.get("parent_phone"),
        message=str(row.get("message") or ""),
        sent_at=parse_timestamp_or(row.get("timestamp") or row.get("createdAt"), now_local),
        status=str(row.get("status") or "sent"),
    )


class TableNotificationRepository(NotificationRepository):
    """Parent notifications are logged to the ``student_sms`` table."""

    def __init__(self, store: TableStore):
        self._store = store

    def send(self, record: NotificationRecord) -> NotificationRecord:
        row = {
            "student_rfid": record.student_tag,
            "student_name": record.student_name,
            "parent_phone": record.parent_phone,
            "message": record.message,
            "timestamp": to_iso(record.sent_at),
            "status": record.status,
        }
        inserted = self._store.insert(TABLE_NOTIFICATIONS, row)
        return _to_notification(inserted[0]) if inserted else record

    def list_recent(self) -> Sequence[NotificationRecord]:
        rows = self._store.select(TABLE_NOTIFICATIONS, Query().order("timestamp", desc=True))
        return [_to_notification(r) for r in rows]
