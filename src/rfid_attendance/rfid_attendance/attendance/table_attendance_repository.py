from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional, Sequence

from ..common.datetime_utils import now_local, parse_iso_date, parse_timestamp_or, to_iso
from ..core.constants import TABLE_ATTENDANCE
from ..core.enums import AttendanceStatus
from ..database.store import Query, TableStore
from ..students.model import StudentId
from .model import AttendanceRecord
from .repository import AttendanceRepository


def _to_record(row: Dict[str, Any]) -> AttendanceRecord:
    grade = row.get("grade")
    created_at = parse_timestamp_or(row.get("timestamp"), now_local)
    try:
        day = parse_iso_date(str(row.get("date"))[:10])
    except ValueError:
        day = created_at.date()
    return AttendanceRecord(
        record_id=row.get("id"),
        student_id=row.get("student_id"),
        date=day,
        status=AttendanceStatus(str(row.get("status") or AttendanceStatus.PRESENT.value).lower()),
        created_at=created_at,
        tag=row.get("rfid_tag"),
        grade=str(grade) if grade not in (None, "") else None,
        student_name=row.get("student_name"),
    )


def _to_row(record: AttendanceRecord) -> Dict[str, Any]:
    row: Dict[str, Optional[Any]] = {
        "student_id": record.student_id,
        "date": record.date.isoformat(),
        "status": record.status.value,
        "timestamp": to_iso(record.created_at),
        "rfid_tag": record.tag,
        "grade": record.grade or "",
        "student_name": record.student_name,
    }
    return {k: v for k, v in row.items() if v is not None}


class TableAttendanceRepository(AttendanceRepository):
    def __init__(self, store: TableStore):
        self._store = store

    def exists(self, student_id: StudentId, work_date: date) -> bool:
        rows = self._store.select(
            TABLE_ATTENDANCE,
            Query().eq("student_id", student_id).eq("date", work_date.isoformat()).limit(1),
        )
        return bool(rows)

    def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        inserted = self._store.insert(TABLE_ATTENDANCE, _to_row(record))
        return _to_record(inserted[0]) if inserted else record

    def list_records(self) -> Sequence[AttendanceRecord]:
        rows = self._store.select(TABLE_ATTENDANCE, Query().order("timestamp"))
        return [_to_record(r) for r in rows]

    def list_for_date(self, work_date: date) -> Sequence[AttendanceRecord]:
        rows = self._store.select(
            TABLE_ATTENDANCE,
            Query().eq("date", work_date.isoformat()).order("timestamp"),
        )
        return [_to_record(r) for r in rows]
