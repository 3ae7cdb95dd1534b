from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence

from ..students.model import StudentId
from .model import AttendanceRecord


class AttendanceRepository(Protocol):
    """The attendance ledger.

    No compare-and-swap is assumed: ``exists`` followed by ``insert`` is
    advisory, and two writers can both pass the check.
    """

    def exists(self, student_id: StudentId, work_date: date) -> bool:
        raise NotImplementedError

    def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        raise NotImplementedError

    def list_records(self) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_date(self, work_date: date) -> Sequence[AttendanceRecord]:
        raise NotImplementedError
