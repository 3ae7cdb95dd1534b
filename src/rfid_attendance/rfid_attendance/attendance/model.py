from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus
from ..students.model import StudentId


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one attendance mark for a student on a calendar day."""

    student_id: StudentId
    date: date
    status: AttendanceStatus
    created_at: datetime
    record_id: Optional[StudentId] = None
    tag: Optional[str] = None
    grade: Optional[str] = None
    student_name: Optional[str] = None
    student_number: Optional[str] = None


@dataclass(frozen=True)
class DailyStats:
    """Read-model for the dashboard counters."""

    day: date
    total_students: int
    active_students: int
    archived_students: int
    present_today: int
    late_today: int
    scanned_today: int
    absent_today: int
    attendance_rate: int
