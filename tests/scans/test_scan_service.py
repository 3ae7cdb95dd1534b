from __future__ import annotations

import random
import threading

import pytest

from src.rfid_attendance.rfid_attendance.container import build_container
from src.rfid_attendance.rfid_attendance.core.enums import ScanOutcome, ScanSourceKind
from src.rfid_attendance.rfid_attendance.core.exceptions import ValidationError
from src.rfid_attendance.rfid_attendance.database.local_store import LocalTableStore
from src.rfid_attendance.rfid_attendance.scans.model import ScanResult
from src.rfid_attendance.rfid_attendance.scans.service import ScanService
from src.rfid_attendance.rfid_attendance.scans.sources import RealtimeChannel, SimulatedScanSource
from src.rfid_attendance.rfid_attendance.scans.worker import ScanWorker


@pytest.fixture
def container(clock):
    c = build_container(
        store=LocalTableStore(),
        scan_policy={"keystroke_settle_seconds": 0, "manual_settle_seconds": 0},
        clock=clock,
        monotonic_clock=clock.monotonic,
    )
    c.student_service.add({"name": "Ana Santos", "tag_id": "STU00100", "grade": "7", "parent_phone": "0917"})
    return c


def test_reader_scans_are_logged_as_processed_raw_scans(container):
    result = container.scan_service.submit("STU00100", kind=ScanSourceKind.KEYSTROKE, source_id="reader-1")

    assert result.outcome == ScanOutcome.ACCEPTED
    rows = container.store.select("rfid_scans")
    assert [(r["rfid_tag"], r["processed"]) for r in rows] == [("STU00100", True)]
    assert container.scans_repo.fetch_new() == []


def test_manual_scans_are_not_logged_as_raw_scans(container):
    container.scan_service.submit("STU00100")

    assert container.store.select("rfid_scans") == []


def test_partial_reader_chunks_are_not_logged(container):
    container.scan_service.submit("STU0", kind=ScanSourceKind.KEYSTROKE)

    assert container.store.select("rfid_scans") == []


def test_simulate_uses_the_simulator(container, clock):
    service = ScanService(
        container.reconciler,
        simulator=SimulatedScanSource(tags=["STU00100"], rng=random.Random(1), clock=clock),
        clock=clock,
    )

    result = service.simulate()

    assert result.outcome == ScanOutcome.ACCEPTED
    assert result.student.name == "Ana Santos"


def test_published_changes_are_reconciled_by_the_worker(container):
    container.scan_service.publish_change("rfid_scans", {"type": "INSERT", "record": {"rfid_tag": "STU00100"}})

    assert container.worker.run_once() == 1
    result = container.realtime_source.results.get_nowait()
    assert result.outcome == ScanOutcome.ACCEPTED
    assert len(container.attendance_repo.list_records()) == 1


def test_publish_change_requires_event_and_record(container):
    with pytest.raises(ValidationError):
        container.scan_service.publish_change("rfid_scans", {"record": {"rfid_tag": "STU00100"}})


def test_publish_change_without_channel_is_rejected(container):
    service = ScanService(container.reconciler)

    with pytest.raises(ValidationError):
        service.publish_change("rfid_scans", {"type": "insert", "record": {}})


def test_daily_stats_count_distinct_scanned_tags(container, clock):
    container.scan_service.submit("STU00100", kind=ScanSourceKind.KEYSTROKE)
    clock.advance(10)
    container.scan_service.submit("UNR00100", kind=ScanSourceKind.KEYSTROKE)
    clock.advance(10)
    container.scan_service.submit("STU00100", kind=ScanSourceKind.KEYSTROKE)

    stats = container.attendance_service.daily_stats(clock().date())

    assert stats.scanned_today == 2
    assert stats.present_today == 1
    assert stats.active_students == 1
    assert stats.attendance_rate == 100


class FailingPoller:
    def poll(self, handle):
        raise RuntimeError("poller bug")


class OnePoller:
    def __init__(self):
        self.polled = threading.Event()

    def poll(self, handle):
        self.polled.set()
        return 0


def test_worker_survives_a_failing_poller_and_stops():
    good = OnePoller()
    worker = ScanWorker(
        lambda event: ScanResult(ScanOutcome.ACCEPTED),
        sources=[FailingPoller(), good],
        channel=RealtimeChannel(),
        interval=0.01,
    )

    worker.start()
    try:
        assert good.polled.wait(2)
        assert worker.running
    finally:
        worker.stop()

    assert worker.running is False


class SignallingSimulator(SimulatedScanSource):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.scanned = threading.Event()

    def next_event(self):
        event = super().next_event()
        self.scanned.set()
        return event


def test_continuous_simulation_scans_at_once_and_stops(container, clock):
    simulator = SignallingSimulator(tags=["STU00100"], rng=random.Random(3), clock=clock)
    service = ScanService(container.reconciler, simulator=simulator, clock=clock)

    assert service.start_simulation(interval=60) is True
    assert service.start_simulation(interval=60) is False
    assert simulator.scanned.wait(5)
    assert service.stop_simulation() is True

    assert service.simulation_running is False
    assert service.stop_simulation() is False
    assert [r.student_name for r in container.attendance_repo.list_records()] == ["Ana Santos"]


def test_simulation_interval_has_a_floor(container):
    with pytest.raises(ValidationError, match="at least 1 seconds"):
        container.scan_service.start_simulation(interval=0.2)

    assert container.scan_service.simulation_running is False
