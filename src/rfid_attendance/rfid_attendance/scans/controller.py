from __future__ import annotations

from typing import Any, Dict

from flask import Flask, jsonify, request

from ..attendance.controller import record_json
from ..common.responses import json_errors
from ..core.constants import DEFAULT_SIMULATION_INTERVAL_SECONDS
from ..core.enums import ScanOutcome, ScanSourceKind
from ..core.exceptions import ValidationError
from ..container import Container
from ..notifications.controller import notification_json
from ..students.controller import student_json
from .model import ScanResult

_HTTP_STATUS = {
    ScanOutcome.INVALID_FORMAT: 400,
    ScanOutcome.UNKNOWN_TAG: 404,
    ScanOutcome.FAILED: 500,
}

# Sources a client may claim; the realtime and polling kinds are server-side only.
_CLIENT_KINDS = {ScanSourceKind.KEYSTROKE, ScanSourceKind.MANUAL}


def result_json(result: ScanResult) -> Dict[str, Any]:
    return {
        "success": result.accepted,
        "outcome": result.outcome.value,
        "message": result.message,
        "level": result.level.value if result.level else None,
        "rfid": result.tag,
        "student": student_json(result.student),
        "record": record_json(result.record),
        "notification": notification_json(result.notification),
        "wait_seconds": result.wait_seconds,
    }


def _respond(result: ScanResult):
    return jsonify(result_json(result)), _HTTP_STATUS.get(result.outcome, 200)


def register(app: Flask, container: Container) -> None:
    scans = container.scan_service

    @app.route("/api/scans", methods=["POST"], endpoint="api_scans")
    @json_errors
    def submit_scan():
        data = request.get_json(silent=True) or {}
        try:
            kind = ScanSourceKind(str(data.get("source") or ScanSourceKind.MANUAL.value).lower())
        except ValueError:
            raise ValidationError("source must be 'manual' or 'keystroke'")
        if kind not in _CLIENT_KINDS:
            raise ValidationError("source must be 'manual' or 'keystroke'")
        tag = str(data.get("rfid") or data.get("tag") or "")
        source_id = str(data.get("source_id") or kind.value)
        return _respond(scans.submit(tag, kind=kind, source_id=source_id))

    @app.route("/api/scans/simulate", methods=["POST"], endpoint="api_scans_simulate")
    @json_errors
    def simulate_scan():
        return _respond(scans.simulate())

    @app.route("/api/scans/simulation/start", methods=["POST"], endpoint="api_simulation_start")
    @json_errors
    def start_simulation():
        data = request.get_json(silent=True) or {}
        raw = data.get("interval_seconds")
        try:
            interval = DEFAULT_SIMULATION_INTERVAL_SECONDS if raw is None else float(raw)
        except (TypeError, ValueError):
            raise ValidationError("interval_seconds must be a number")
        if not scans.start_simulation(interval):
            return jsonify({"success": False, "message": "Simulation is already running", "running": True}), 409
        return jsonify(
            {"success": True, "message": f"Simulation started - scanning every {interval:g} seconds", "running": True}
        )

    @app.route("/api/scans/simulation/stop", methods=["POST"], endpoint="api_simulation_stop")
    @json_errors
    def stop_simulation():
        stopped = scans.stop_simulation()
        message = "Simulation stopped" if stopped else "Simulation is not running"
        return jsonify({"success": True, "message": message, "running": False})

    @app.route("/api/scans/state", methods=["GET"], endpoint="api_scans_state")
    @json_errors
    def scan_state():
        state = scans.state()
        state["last_scanned_student"] = student_json(state["last_scanned_student"])
        state["worker_running"] = container.worker.running
        state["simulation_running"] = scans.simulation_running
        return jsonify({"success": True, "state": state})

    @app.route("/api/realtime/<table>", methods=["POST"], endpoint="api_realtime")
    @json_errors
    def realtime_change(table: str):
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        scans.publish_change(table, data)
        return jsonify({"success": True, "message": "queued"}), 202

    @app.route("/api/health", methods=["GET"], endpoint="api_health")
    def health():
        store = container.store
        connected = store.ping()
        return jsonify(
            {
                "status": "OK" if connected else "DEGRADED",
                "storage": store.backend_name,
                "connected": connected,
                "worker_running": container.worker.running,
                "pending_changes": container.channel.pending(),
            }
        )
