from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from ..common.datetime_utils import now_local
from ..core.enums import AttendanceStatus
from ..core.exceptions import NotFoundError, StoreError
from ..students.model import Student
from ..students.service import StudentService
from .model import NotificationRecord
from .repository import NotificationRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Delivery:
    record: NotificationRecord
    delivered: bool


class NotificationService:
    """Use case: parent notifications.

    Sending is fire-and-forget for callers: a failed write is logged and the
    notification is kept in memory (``held``), never retried.
    """

    def __init__(self, notifications: NotificationRepository, students: StudentService, *, clock=now_local):
        self._notifications = notifications
        self._students = students
        self._clock = clock
        self._lock = threading.Lock()
        self._held: List[NotificationRecord] = []

    @property
    def held(self) -> Sequence[NotificationRecord]:
        with self._lock:
            return list(self._held)

    def attendance_notice(
        self,
        student: Student,
        status: AttendanceStatus,
        *,
        tag: Optional[str] = None,
        sent_at: Optional[datetime] = None,
    ) -> NotificationRecord:
        return NotificationRecord(
            student_tag=student.tag_id or tag,
            student_name=student.name,
            parent_phone=student.parent_phone,
            message=f"Your child {student.name} has been marked {status.value}",
            sent_at=sent_at or self._clock(),
        )

    def send(self, record: NotificationRecord) -> Delivery:
        try:
            saved = self._notifications.send(record)
        except StoreError as e:
            logger.error("Failed to log notification for %s: %s", record.student_name, e)
            with self._lock:
                self._held.append(record)
            return Delivery(record=record, delivered=False)
        logger.info("Notification sent to parent of %s (%s)", record.student_name, record.parent_phone)
        return Delivery(record=saved, delivered=True)

    def notify_parent(self, tag: str) -> Delivery:
        """Manual 'arrived at school' message for the student holding ``tag``."""
        student = self._students.find_by_tag_prefix(tag)
        if not student:
            raise NotFoundError(f"Student not found with RFID: {tag}")
        record = NotificationRecord(
            student_tag=student.tag_id or tag,
            student_name=student.name,
            parent_phone=student.parent_phone,
            message=f"Your child {student.name} has arrived at school",
            sent_at=self._clock(),
        )
        return self.send(record)

    def list_recent(self) -> Sequence[NotificationRecord]:
        try:
            stored = list(self._notifications.list_recent())
        except StoreError as e:
            logger.error("fetch notifications failed: %s", e)
            stored = []
        combined = stored + self.held
        combined.sort(key=lambda n: n.sent_at.replace(tzinfo=None), reverse=True)
        return combined
