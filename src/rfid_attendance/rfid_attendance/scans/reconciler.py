from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import replace
from datetime import date
from typing import Any, Dict, Optional

from ..attendance.factory import AttendanceStrategyFactory
from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import monotonic
from ..common.validators import is_valid_manual_tag, normalize_physical_tag
from ..core.enums import AttendanceStatus, MessageLevel, ScanOutcome, ScanSourceKind
from ..core.exceptions import StoreError
from ..notifications.service import NotificationService
from ..students.model import Student, StudentId
from ..students.service import StudentService
from .model import ReconcilerState, ScanEvent, ScanResult
from .policy import ScanPolicy

logger = logging.getLogger(__name__)


class ScanReconciler:
    """Turns raw badge reads into attendance records and parent notifications.

    Every scan source (keyboard-wedge reader, manual entry, simulator,
    realtime feed, pollers) goes through :meth:`handle`. One scan is in flight
    at a time; anything arriving meanwhile is dropped, except repeats of the
    tag that is still settling, which replace it.

    Per accepted scan at most one ledger write and one parent notification are
    made. The exists-then-insert check is advisory: another process can race
    it, and only a unique constraint in the ledger closes that window.
    """

    def __init__(
        self,
        students: StudentService,
        attendance: AttendanceRepository,
        notifications: NotificationService,
        *,
        policy: Optional[ScanPolicy] = None,
        strategy_factory: Optional[AttendanceStrategyFactory] = None,
        monotonic_clock=monotonic,
        sleep=time.sleep,
    ):
        self._students = students
        self._attendance = attendance
        self._notifications = notifications
        self.policy = policy or ScanPolicy()
        self._factory = strategy_factory or AttendanceStrategyFactory()
        self._monotonic = monotonic_clock
        self._sleep = sleep

        self.state = ReconcilerState()
        self._busy = threading.Lock()
        self._state_lock = threading.Lock()
        self._pending: Optional[ScanEvent] = None

    @property
    def processing(self) -> bool:
        return self._busy.locked()

    def handle(self, event: ScanEvent) -> ScanResult:
        if not self._busy.acquire(blocking=False):
            return self._coalesce_or_drop(event)

        with self._state_lock:
            self.state.processing = True
        try:
            return self._process(event)
        except Exception:
            logger.exception("Error processing RFID scan %s from %s", event.tag, event.source_id)
            with self._state_lock:
                self.state.stats.failed += 1
            return ScanResult(
                ScanOutcome.FAILED,
                "Error processing RFID scan",
                MessageLevel.ERROR,
                tag=event.tag,
            )
        finally:
            with self._state_lock:
                self._pending = None
                self.state.processing = False
            self._busy.release()

    def snapshot(self) -> Dict[str, Any]:
        with self._state_lock:
            student = self.state.last_scanned_student
            return {
                "processing": self.state.processing,
                "last_scanned_student": student,
                "stats": self.state.stats.as_dict(),
                "offline_attendance": len(self.state.offline_attendance),
                "cooldowns": len(self.state.cooldown_by_tag),
            }

    # -- Debouncing -------------------------------------------------------

    def _normalize(self, event: ScanEvent) -> Optional[str]:
        raw = (event.tag or "").strip()
        if event.source_kind == ScanSourceKind.KEYSTROKE and self.policy.physical_tag_length:
            return normalize_physical_tag(raw, self.policy.physical_tag_length)
        return raw if is_valid_manual_tag(raw) else None

    def _coalesce_or_drop(self, event: ScanEvent) -> ScanResult:
        tag = self._normalize(event)
        with self._state_lock:
            pending = self._pending
            if pending is not None and tag == pending.tag and event.source_kind == pending.source_kind:
                self._pending = replace(event, tag=tag)
                return ScanResult(ScanOutcome.COALESCED, tag=tag)
            self.state.stats.rejected += 1
        logger.info("Scan ignored: another scan is in progress (%s)", event.tag)
        return ScanResult(ScanOutcome.BUSY, tag=tag or event.tag)

    def _reject(self, outcome: ScanOutcome, tag: Optional[str], message: str = "", level=None, **extra) -> ScanResult:
        with self._state_lock:
            self.state.stats.rejected += 1
        return ScanResult(outcome, message, level, tag=tag, **extra)

    def _cooldown_remaining(self, tag: str, now: float) -> float:
        last = self.state.cooldown_by_tag.get(tag)
        if last is None:
            return 0.0
        elapsed = now - last
        return self.policy.cooldown_seconds - elapsed if elapsed < self.policy.cooldown_seconds else 0.0

    def _check_keystroke_read(self, tag: str, now: float) -> Optional[ScanResult]:
        last = self.state.last_tag_seen
        if last is None:
            return None
        elapsed = now - self.state.last_tag_seen_at
        if tag == last and elapsed < self.policy.same_tag_window_seconds:
            return self._reject(ScanOutcome.DUPLICATE_READ, tag)
        if (
            len(tag) < self.state.last_tag_seen_length
            and last.startswith(tag)
            and elapsed < self.policy.partial_read_window_seconds
        ):
            logger.debug("Partial read %s of %s ignored", tag, last)
            return self._reject(ScanOutcome.PARTIAL_READ, tag)
        return None

    def _remember_seen(self, tag: str, now: float) -> None:
        with self._state_lock:
            self.state.last_tag_seen = tag
            self.state.last_tag_seen_length = len(tag)
            self.state.last_tag_seen_at = now

    def _settle(self, event: ScanEvent) -> ScanEvent:
        delay = self.policy.settle_seconds(event.source_kind)
        if delay <= 0:
            return event
        with self._state_lock:
            self._pending = event
        self._sleep(delay)
        with self._state_lock:
            settled = self._pending or event
            self._pending = None
        return settled

    def _process(self, event: ScanEvent) -> ScanResult:
        tag = self._normalize(event)
        if tag is None:
            if event.source_kind == ScanSourceKind.KEYSTROKE:
                # Readers deliver tags in chunks; short reads are normal.
                return self._reject(ScanOutcome.INVALID_FORMAT, event.tag)
            return self._reject(
                ScanOutcome.INVALID_FORMAT,
                event.tag,
                "Invalid RFID format. Use 3-32 alphanumeric characters.",
                MessageLevel.ERROR,
            )

        if tag in self.policy.blocked_tags:
            logger.info("RFID %s scan ignored: blocked RFID", tag)
            return self._reject(ScanOutcome.BLOCKED, tag)

        now = self._monotonic()
        remaining = self._cooldown_remaining(tag, now)
        if remaining > 0:
            wait = math.ceil(remaining)
            logger.info("RFID %s scan ignored: cooldown active (%.0fms remaining)", tag, remaining * 1000)
            return self._reject(
                ScanOutcome.COOLDOWN,
                tag,
                f"RFID scan ignored: please wait {wait} seconds",
                MessageLevel.INFO,
                wait_seconds=wait,
            )

        if event.source_kind == ScanSourceKind.KEYSTROKE:
            rejected = self._check_keystroke_read(tag, now)
            if rejected:
                return rejected
            self._remember_seen(tag, now)

        settled = self._settle(replace(event, tag=tag))
        logger.info("RFID scanned: %s (source=%s)", tag, settled.source_id)

        try:
            student = self._students.find_by_tag_prefix(tag)
        except StoreError as e:
            logger.error("Student lookup for RFID %s failed: %s", tag, e)
            with self._state_lock:
                self.state.stats.failed += 1
            return ScanResult(
                ScanOutcome.FAILED,
                f"Could not look up RFID {tag}: storage unavailable",
                MessageLevel.ERROR,
                tag=tag,
            )

        try:
            if student is None:
                return self._unknown(tag)
            return self._decide_and_commit(settled, student)
        finally:
            self._stamp(tag)

    # -- Resolving / Deciding / Committing -------------------------------

    def _stamp(self, tag: str) -> None:
        with self._state_lock:
            self.state.cooldown_by_tag[tag] = self._monotonic()

    def _unknown(self, tag: str) -> ScanResult:
        logger.info("RFID scan failed: %s not found in database.", tag)
        with self._state_lock:
            self.state.last_scanned_student = None
            self.state.stats.unknown += 1
        return ScanResult(
            ScanOutcome.UNKNOWN_TAG,
            f"Student not found with RFID: {tag}",
            MessageLevel.ERROR,
            tag=tag,
        )

    def _held_offline(self, student_id: StudentId, day: date) -> bool:
        with self._state_lock:
            return any(
                str(r.student_id) == str(student_id) and r.date == day for r in self.state.offline_attendance
            )

    def _decide_and_commit(self, event: ScanEvent, student: Student) -> ScanResult:
        tag = event.tag
        observed = event.observed_at
        day = observed.date()
        strategy = self._factory.for_scan(observed_at=observed, late_after=self.policy.late_after)
        status = strategy.decide(observed_at=observed, late_after=self.policy.late_after).status

        with self._state_lock:
            self.state.last_scanned_student = student

        record = AttendanceRecord(
            student_id=student.student_id,
            date=day,
            status=status,
            created_at=observed,
            tag=tag,
            grade=student.grade,
            student_name=student.name,
        )

        offline = False
        try:
            if self._held_offline(student.student_id, day) or self._attendance.exists(student.student_id, day):
                logger.info("Attendance already marked for %s today", student.name)
                with self._state_lock:
                    self.state.stats.already_marked += 1
                return ScanResult(
                    ScanOutcome.ALREADY_MARKED,
                    f"Attendance already marked for {student.name} today",
                    MessageLevel.INFO,
                    tag=tag,
                    student=student,
                )
            saved = self._attendance.insert(record)
        except StoreError as e:
            logger.warning("Error saving attendance for %s, keeping it in memory: %s", student.name, e)
            offline = True
            saved = record
            with self._state_lock:
                self.state.offline_attendance.append(record)

        delivery = self._notifications.send(
            self._notifications.attendance_notice(student, status, tag=tag, sent_at=observed)
        )

        with self._state_lock:
            stats = self.state.stats
            stats.accepted += 1
            if status == AttendanceStatus.LATE:
                stats.late += 1
            else:
                stats.present += 1
            if offline:
                stats.offline += 1
            self.state.last_scanned_student = student

        if offline:
            return ScanResult(
                ScanOutcome.ACCEPTED_OFFLINE,
                f"Attendance marked for {student.name} ({status.value}) (offline mode)",
                MessageLevel.WARNING,
                tag=tag,
                student=student,
                record=saved,
                notification=delivery.record,
            )
        logger.info("Attendance marked successfully for %s (%s)", student.name, status.value)
        return ScanResult(
            ScanOutcome.ACCEPTED,
            f"Attendance marked for {student.name} ({status.value})",
            MessageLevel.SUCCESS,
            tag=tag,
            student=student,
            record=saved,
            notification=delivery.record,
        )
