from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Optional

import pytest

from src.rfid_attendance.rfid_attendance.attendance.model import AttendanceRecord
from src.rfid_attendance.rfid_attendance.core.enums import (
    AttendanceStatus,
    MessageLevel,
    ScanOutcome,
    ScanSourceKind,
)
from src.rfid_attendance.rfid_attendance.core.exceptions import StoreError
from src.rfid_attendance.rfid_attendance.notifications.model import NotificationRecord
from src.rfid_attendance.rfid_attendance.notifications.service import NotificationService
from src.rfid_attendance.rfid_attendance.scans.model import ScanEvent
from src.rfid_attendance.rfid_attendance.scans.policy import ScanPolicy
from src.rfid_attendance.rfid_attendance.scans.reconciler import ScanReconciler
from src.rfid_attendance.rfid_attendance.students.model import Student
from src.rfid_attendance.rfid_attendance.students.service import StudentService


class InMemoryStudents:
    def __init__(self, *students: Student):
        self.students = list(students)
        self.lookups = 0
        self.fail_lookups = 0

    def find_by_tag_prefix(self, prefix, *, limit=2):
        self.lookups += 1
        if self.fail_lookups:
            self.fail_lookups -= 1
            raise StoreError("connection reset")
        hits = [
            s
            for s in self.students
            if not s.archived and (s.tag_id or "").casefold().startswith(prefix.casefold())
        ]
        return hits[:limit]

    def get_by_id(self, student_id):
        return next((s for s in self.students if str(s.student_id) == str(student_id)), None)


class InMemoryAttendance:
    def __init__(self):
        self.records: list[AttendanceRecord] = []
        self.fail_inserts = False
        self.exists_error: Optional[Exception] = None

    def exists(self, student_id, work_date: date) -> bool:
        if self.exists_error:
            raise self.exists_error
        return any(r.student_id == student_id and r.date == work_date for r in self.records)

    def insert(self, record: AttendanceRecord) -> AttendanceRecord:
        if self.fail_inserts:
            raise StoreError("attendance insert failed", code="08006")
        saved = replace(record, record_id=len(self.records) + 1)
        self.records.append(saved)
        return saved


class InMemoryNotifications:
    def __init__(self):
        self.sent: list[NotificationRecord] = []
        self.fail = False

    def send(self, record: NotificationRecord) -> NotificationRecord:
        if self.fail:
            raise StoreError("student_sms insert failed")
        self.sent.append(record)
        return record

    def list_recent(self):
        return list(reversed(self.sent))


ANA = Student(student_id=1, name="Ana Santos", tag_id="STU00100XYZ", grade="7", parent_phone="+639170000001")
BEN = Student(student_id=2, name="Ben Reyes", tag_id="STU002", grade="8", parent_phone="+639170000002")


class Harness:
    def __init__(self, clock, *students: Student, policy: Optional[ScanPolicy] = None, sleep=None):
        self.clock = clock
        self.students = InMemoryStudents(*(students or (ANA, BEN)))
        self.attendance = InMemoryAttendance()
        self.notifications = InMemoryNotifications()
        student_service = StudentService(self.students, clock=clock)
        self.notifier = NotificationService(self.notifications, student_service, clock=clock)
        self.reconciler = ScanReconciler(
            student_service,
            self.attendance,
            self.notifier,
            policy=policy or ScanPolicy(),
            monotonic_clock=clock.monotonic,
            sleep=sleep or (lambda seconds: None),
        )

    def scan(self, tag: str, kind: ScanSourceKind = ScanSourceKind.MANUAL):
        return self.reconciler.handle(
            ScanEvent(tag=tag, observed_at=self.clock(), source_id="test", source_kind=kind)
        )


@pytest.fixture
def harness(clock):
    return Harness(clock)


def test_reader_scan_marks_present_and_notifies_parent(harness, clock):
    clock.set(datetime(2026, 3, 2, 7, 59, 0))

    result = harness.scan("STU00100", ScanSourceKind.KEYSTROKE)

    assert result.outcome == ScanOutcome.ACCEPTED
    assert result.level == MessageLevel.SUCCESS
    assert result.student == ANA
    assert [(r.student_id, r.date, r.status) for r in harness.attendance.records] == [
        (1, date(2026, 3, 2), AttendanceStatus.PRESENT)
    ]
    assert len(harness.notifications.sent) == 1
    assert harness.notifications.sent[0].message == "Your child Ana Santos has been marked present"
    assert harness.notifications.sent[0].parent_phone == "+639170000001"
    assert harness.reconciler.state.last_scanned_student == ANA


def test_rescan_within_cooldown_reports_seconds_to_wait(harness, clock):
    clock.set(datetime(2026, 3, 2, 7, 59, 0))
    harness.scan("STU00100", ScanSourceKind.KEYSTROKE)

    clock.advance(2)
    result = harness.scan("STU00100", ScanSourceKind.KEYSTROKE)

    assert result.outcome == ScanOutcome.COOLDOWN
    assert result.message == "RFID scan ignored: please wait 3 seconds"
    assert result.wait_seconds == 3
    assert len(harness.attendance.records) == 1
    assert len(harness.notifications.sent) == 1


def test_cooldown_wait_rounds_up(harness, clock):
    harness.scan("STU002")

    clock.advance(0.2)
    assert harness.scan("STU002").wait_seconds == 5

    clock.advance(4.7)
    assert harness.scan("STU002").message == "RFID scan ignored: please wait 1 seconds"


def test_second_scan_same_day_is_already_marked(harness, clock):
    harness.scan("STU002")

    clock.advance(6)
    result = harness.scan("STU002")

    assert result.outcome == ScanOutcome.ALREADY_MARKED
    assert result.message == "Attendance already marked for Ben Reyes today"
    assert result.level == MessageLevel.INFO
    assert len(harness.attendance.records) == 1
    assert len(harness.notifications.sent) == 1


def test_next_day_after_cutoff_is_late(harness, clock):
    clock.set(datetime(2026, 3, 2, 7, 59, 0))
    harness.scan("STU00100", ScanSourceKind.KEYSTROKE)

    clock.set(datetime(2026, 3, 3, 8, 0, 1))
    result = harness.scan("STU00100", ScanSourceKind.KEYSTROKE)

    assert result.outcome == ScanOutcome.ACCEPTED
    assert result.record.status == AttendanceStatus.LATE
    assert [r.date for r in harness.attendance.records] == [date(2026, 3, 2), date(2026, 3, 3)]
    assert harness.notifications.sent[-1].message == "Your child Ana Santos has been marked late"


@pytest.mark.parametrize(
    "when, expected",
    [
        (datetime(2026, 3, 2, 8, 0, 0), AttendanceStatus.PRESENT),
        (datetime(2026, 3, 2, 8, 0, 1), AttendanceStatus.LATE),
    ],
)
def test_cutoff_is_inclusive_for_present(harness, clock, when, expected):
    clock.set(when)

    assert harness.scan("STU002").record.status == expected


def test_unknown_tag_writes_nothing_and_stamps_cooldown(harness, clock):
    harness.scan("STU002")
    clock.advance(10)

    result = harness.scan("UNR001")

    assert result.outcome == ScanOutcome.UNKNOWN_TAG
    assert result.message == "Student not found with RFID: UNR001"
    assert result.level == MessageLevel.ERROR
    assert len(harness.attendance.records) == 1
    assert len(harness.notifications.sent) == 1
    assert harness.reconciler.state.last_scanned_student is None

    clock.advance(1)
    assert harness.scan("UNR001").outcome == ScanOutcome.COOLDOWN


def test_blocked_tag_is_dropped_silently(harness):
    result = harness.scan("38103006", ScanSourceKind.KEYSTROKE)

    assert result.outcome == ScanOutcome.BLOCKED
    assert result.level is None
    assert harness.students.lookups == 0


def test_manual_tag_must_match_format(harness):
    result = harness.scan("a b")

    assert result.outcome == ScanOutcome.INVALID_FORMAT
    assert result.message == "Invalid RFID format. Use 3-32 alphanumeric characters."
    assert harness.students.lookups == 0


def test_short_reader_chunk_is_ignored_without_message(harness):
    result = harness.scan("STU00", ScanSourceKind.KEYSTROKE)

    assert result.outcome == ScanOutcome.INVALID_FORMAT
    assert result.level is None


def test_reader_scan_is_truncated_to_physical_tag_length(harness):
    result = harness.scan("STU00100XYZ123", ScanSourceKind.KEYSTROKE)

    assert result.tag == "STU00100"
    assert result.outcome == ScanOutcome.ACCEPTED


def test_partial_read_after_full_read_is_ignored(clock):
    harness = Harness(clock, policy=ScanPolicy(physical_tag_length=None))
    harness.scan("STU00100XYZ", ScanSourceKind.KEYSTROKE)

    clock.advance(0.5)
    partial = harness.scan("STU001", ScanSourceKind.KEYSTROKE)

    clock.advance(1.0)
    later = harness.scan("STU001", ScanSourceKind.KEYSTROKE)

    assert partial.outcome == ScanOutcome.PARTIAL_READ
    assert later.outcome == ScanOutcome.ALREADY_MARKED


def test_reread_of_unresolved_tag_is_duplicate(harness, clock):
    harness.students.fail_lookups = 1

    failed = harness.scan("STU00200", ScanSourceKind.KEYSTROKE)
    clock.advance(1)
    reread = harness.scan("STU00200", ScanSourceKind.KEYSTROKE)

    assert failed.outcome == ScanOutcome.FAILED
    assert "storage unavailable" in failed.message
    assert reread.outcome == ScanOutcome.DUPLICATE_READ


def test_ledger_failure_falls_back_to_offline_mode(harness, clock):
    harness.attendance.fail_inserts = True

    result = harness.scan("STU002")

    assert result.outcome == ScanOutcome.ACCEPTED_OFFLINE
    assert result.message.endswith("(offline mode)")
    assert result.level == MessageLevel.WARNING
    assert len(harness.notifications.sent) == 1
    assert harness.reconciler.processing is False
    assert len(harness.reconciler.state.offline_attendance) == 1

    clock.advance(6)
    assert harness.scan("STU002").outcome == ScanOutcome.ALREADY_MARKED


def test_notifier_failure_keeps_attendance(harness):
    harness.notifications.fail = True

    result = harness.scan("STU002")

    assert result.outcome == ScanOutcome.ACCEPTED
    assert len(harness.attendance.records) == 1
    assert [n.student_name for n in harness.notifier.held] == ["Ben Reyes"]


def test_unexpected_error_is_reported_and_releases_lock(harness, clock):
    harness.attendance.exists_error = RuntimeError("boom")

    result = harness.scan("STU002")

    assert result.outcome == ScanOutcome.FAILED
    assert result.message == "Error processing RFID scan"
    assert harness.reconciler.processing is False

    harness.attendance.exists_error = None
    clock.advance(6)
    assert harness.scan("STU002").outcome == ScanOutcome.ACCEPTED


def test_scans_during_settle_are_coalesced_or_dropped(clock):
    during = []

    def sleep(seconds):
        event = ScanEvent(tag="STU002", observed_at=clock(), source_id="test", source_kind=ScanSourceKind.MANUAL)
        during.append(harness.reconciler.handle(event))
        during.append(harness.reconciler.handle(replace(event, tag="STU00100XYZ")))

    harness = Harness(clock, sleep=sleep)
    result = harness.scan("STU002")

    assert [r.outcome for r in during] == [ScanOutcome.COALESCED, ScanOutcome.BUSY]
    assert result.outcome == ScanOutcome.ACCEPTED
    assert len(harness.attendance.records) == 1
    assert harness.reconciler.state.stats.rejected == 1


def test_ambiguous_prefix_is_unknown(clock):
    twin = Student(student_id=3, name="Cara Cruz", tag_id="STU00299", grade="8")
    harness = Harness(clock, ANA, BEN, twin)

    assert harness.scan("STU002").outcome == ScanOutcome.UNKNOWN_TAG


def test_snapshot_counts_outcomes(harness, clock):
    harness.scan("STU002")
    clock.set(clock.now.replace(hour=8, minute=30))
    harness.scan("STU00100XYZ")
    clock.advance(10)
    harness.scan("UNR002")

    snap = harness.reconciler.snapshot()

    assert snap["processing"] is False
    assert snap["stats"]["accepted"] == 2
    assert snap["stats"]["present"] == 1
    assert snap["stats"]["late"] == 1
    assert snap["stats"]["unknown"] == 1
    assert snap["cooldowns"] == 3
