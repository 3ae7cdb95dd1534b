from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, time
from typing import Optional, Sequence

from ..core.enums import AttendanceStatus
from ..core.exceptions import StoreError
from ..scans.repository import ScanRepository
from ..students.repository import StudentRepository
from .model import AttendanceRecord, DailyStats
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


def _grade_key(record: AttendanceRecord) -> int:
    try:
        return int(record.grade or 0)
    except ValueError:
        return 0


class AttendanceService:
    """Use case: read side of the ledger (listings and dashboard counters)."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        students: StudentRepository,
        scans: Optional[ScanRepository] = None,
    ):
        self._attendance = attendance
        self._students = students
        self._scans = scans

    def list_records(self) -> Sequence[AttendanceRecord]:
        """All records, enriched with the student's current grade, sorted by grade."""
        records = list(self._attendance.list_records())
        if not records:
            return []

        student_ids = list({r.student_id for r in records if r.student_id is not None})
        by_id = {str(s.student_id): s for s in self._students.get_many(student_ids)}

        merged = []
        for r in records:
            student = by_id.get(str(r.student_id))
            merged.append(
                replace(
                    r,
                    grade=(student.grade if student and student.grade else r.grade) or "",
                    student_number=student.student_number if student else None,
                )
            )
        merged.sort(key=_grade_key)
        return merged

    def list_for_date(self, work_date: date) -> Sequence[AttendanceRecord]:
        return self._attendance.list_for_date(work_date)

    def daily_stats(self, today: date) -> DailyStats:
        active = len(self._students.list_students(archived=False))
        archived = len(self._students.list_students(archived=True))

        todays = self._attendance.list_for_date(today)
        present_ids = {str(r.student_id) for r in todays}
        late_ids = {str(r.student_id) for r in todays if r.status == AttendanceStatus.LATE}

        present = len(present_ids)
        rate = round(present / active * 100) if active > 0 else 0
        return DailyStats(
            day=today,
            total_students=active + archived,
            active_students=active,
            archived_students=archived,
            present_today=present,
            late_today=len(late_ids),
            scanned_today=self._tags_scanned_on(today),
            absent_today=max(0, active - present),
            attendance_rate=rate,
        )

    def _tags_scanned_on(self, day: date) -> int:
        """Distinct badge ids seen in raw scans that day (includes unknown tags)."""
        if self._scans is None:
            return 0
        try:
            tags = self._scans.tags_scanned_between(datetime.combine(day, time.min), datetime.combine(day, time.max))
        except StoreError as e:
            logger.error("Error fetching today's RFID scans: %s", e)
            return 0
        return len(tags)
