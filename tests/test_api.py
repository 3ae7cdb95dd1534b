from __future__ import annotations

import pytest

from src.rfid_attendance.rfid_attendance.container import build_container
from src.rfid_attendance.rfid_attendance.database.local_store import LocalTableStore
from src.rfid_attendance.rfid_attendance.main import create_app


@pytest.fixture
def container(clock):
    return build_container(
        store=LocalTableStore(),
        scan_policy={"keystroke_settle_seconds": 0, "manual_settle_seconds": 0},
        clock=clock,
        monotonic_clock=clock.monotonic,
    )


@pytest.fixture
def client(monkeypatch, container):
    monkeypatch.setenv("APP_ENV", "testing")
    app = create_app(container)
    return app.test_client()


@pytest.fixture
def ana(client):
    resp = client.post(
        "/api/students",
        json={"name": "Ana Santos", "rfid": "STU00100", "grade": "7", "parent_phone": "+639170000001"},
    )
    assert resp.status_code == 201
    return resp.get_json()["student"]


def test_student_crud_flow(client, ana):
    assert ana["rfid"] == "STU00100"
    assert ana["initials"] == "AS"

    resp = client.patch(f"/api/students/{ana['id']}", json={"grade": "8"})
    assert resp.get_json()["student"]["grade"] == "8"

    assert client.post(f"/api/students/{ana['id']}/archive").status_code == 200
    assert client.get("/api/students").get_json()["students"] == []
    assert [s["name"] for s in client.get("/api/students/archived").get_json()["students"]] == ["Ana Santos"]

    restored = client.post(f"/api/students/{ana['id']}/unarchive").get_json()
    assert restored["success"] is True
    assert restored["student"]["archived"] is False


def test_duplicate_tag_is_a_400(client, ana):
    resp = client.post("/api/students", json={"name": "Ben Reyes", "rfid": "stu00100"})

    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "message": 'RFID "stu00100" is already assigned to another student'}


def test_missing_student_is_a_404(client):
    resp = client.patch("/api/students/999", json={"grade": "8"})

    assert resp.status_code == 404
    assert resp.get_json()["success"] is False


def test_manual_scan_marks_attendance_and_shows_in_listings(client, ana):
    resp = client.post("/api/scans", json={"rfid": "STU00100"})

    body = resp.get_json()
    assert resp.status_code == 200
    assert body["success"] is True
    assert body["outcome"] == "accepted"
    assert body["level"] == "success"
    assert body["record"]["status"] == "present"
    assert body["notification"]["message"] == "Your child Ana Santos has been marked present"

    records = client.get("/api/attendance").get_json()["records"]
    assert [r["student_name"] for r in records] == ["Ana Santos"]
    assert client.get("/api/attendance?date=2026-03-02").get_json()["records"] == records

    stats = client.get("/api/stats").get_json()["stats"]
    assert stats["present_today"] == 1
    assert stats["attendance_rate"] == 100

    notes = client.get("/api/notifications").get_json()["notifications"]
    assert notes[0]["student_rfid"] == "STU00100"


def test_scan_outcomes_map_to_status_codes(client, clock, ana):
    assert client.post("/api/scans", json={"rfid": "x"}).status_code == 400
    assert client.post("/api/scans", json={"rfid": "UNR001"}).status_code == 404

    client.post("/api/scans", json={"rfid": "STU00100", "source": "keystroke"})
    clock.advance(1)
    cooldown = client.post("/api/scans", json={"rfid": "STU00100", "source": "keystroke"})
    assert cooldown.status_code == 200
    assert cooldown.get_json()["outcome"] == "cooldown"
    assert cooldown.get_json()["wait_seconds"] == 4


def test_server_side_sources_cannot_be_claimed(client):
    resp = client.post("/api/scans", json={"rfid": "STU001", "source": "realtime"})

    assert resp.status_code == 400


def test_bad_date_filter_is_a_400(client):
    assert client.get("/api/stats?date=02/03/2026").status_code == 400


def test_simulate_returns_a_scan_result(client):
    body = client.post("/api/scans/simulate").get_json()

    assert body["outcome"] in {"accepted", "unknown_tag"}


def test_realtime_webhook_is_queued_until_drained(client, container, ana):
    resp = client.post("/api/realtime/rfid_scans", json={"type": "INSERT", "record": {"rfid_tag": "STU00100"}})

    assert resp.status_code == 202
    assert client.get("/api/health").get_json()["pending_changes"] == 1

    container.worker.run_once()

    state = client.get("/api/scans/state").get_json()["state"]
    assert state["stats"]["accepted"] == 1
    assert state["last_scanned_student"]["name"] == "Ana Santos"
    assert state["worker_running"] is False


def test_manual_notification(client, ana):
    ok = client.post("/api/notifications", json={"rfid": "STU00100"})
    missing = client.post("/api/notifications", json={"rfid": "UNR001"})
    blank = client.post("/api/notifications", json={})

    assert ok.get_json()["message"] == "Notification sent to parent of Ana Santos"
    assert missing.status_code == 404
    assert blank.status_code == 400


def test_health_reports_local_backend(client):
    body = client.get("/api/health").get_json()

    assert body["status"] == "OK"
    assert body["storage"] == "local"
    assert body["connected"] is True


def test_stats_default_to_the_day_of_the_container_clock(client, container, clock, ana):
    client.post("/api/scans", json={"rfid": "STU00100"})

    stats = client.get("/api/stats").get_json()["stats"]

    assert container.clock is clock
    assert stats["date"] == "2026-03-02"
    assert stats["present_today"] == 1


def test_student_listing_accepts_search_and_sort(client, ana):
    client.post("/api/students", json={"name": "Ben Reyes", "rfid": "STU00200", "grade": "5"})

    by_grade = client.get("/api/students?sort=grade-asc").get_json()["students"]
    found = client.get("/api/students?q=reyes").get_json()["students"]

    assert [s["name"] for s in by_grade] == ["Ben Reyes", "Ana Santos"]
    assert [s["rfid"] for s in found] == ["STU00200"]
    assert client.get("/api/students?sort=shoe-size").status_code == 400


def test_simulation_toggle_endpoints(client, container):
    assert client.post("/api/scans/simulation/start", json={"interval_seconds": 0}).status_code == 400
    assert client.post("/api/scans/simulation/stop").get_json()["message"] == "Simulation is not running"

    started = client.post("/api/scans/simulation/start", json={"interval_seconds": 30})
    again = client.post("/api/scans/simulation/start")
    running = client.get("/api/scans/state").get_json()["state"]["simulation_running"]
    stopped = client.post("/api/scans/simulation/stop").get_json()

    assert started.get_json()["message"] == "Simulation started - scanning every 30 seconds"
    assert again.status_code == 409
    assert running is True
    assert stopped["message"] == "Simulation stopped"
    assert container.scan_service.simulation_running is False
