from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from ..common.datetime_utils import parse_iso_date
from ..common.responses import json_errors
from ..core.exceptions import ValidationError
from ..container import Container
from .model import AttendanceRecord, DailyStats


def record_json(record: Optional[AttendanceRecord]) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    return {
        "id": record.record_id,
        "student_id": record.student_id,
        "student_name": record.student_name,
        "student_number": record.student_number,
        "grade": record.grade,
        "rfid_tag": record.tag,
        "date": record.date.isoformat(),
        "status": record.status.value,
        "timestamp": record.created_at.isoformat(timespec="seconds"),
    }


def stats_json(stats: DailyStats) -> Dict[str, Any]:
    return {
        "date": stats.day.isoformat(),
        "total_students": stats.total_students,
        "active_students": stats.active_students,
        "archived_students": stats.archived_students,
        "present_today": stats.present_today,
        "late_today": stats.late_today,
        "absent_today": stats.absent_today,
        "scanned_today": stats.scanned_today,
        "attendance_rate": stats.attendance_rate,
    }


def _requested_day():
    raw = request.args.get("date")
    if not raw:
        return None
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD")


def register(app: Flask, container: Container) -> None:
    attendance = container.attendance_service

    @app.route("/api/attendance", methods=["GET"], endpoint="api_attendance")
    @json_errors
    def list_attendance():
        day = _requested_day()
        records = attendance.list_for_date(day) if day else attendance.list_records()
        return jsonify({"success": True, "records": [record_json(r) for r in records]})

    @app.route("/api/stats", methods=["GET"], endpoint="api_stats")
    @json_errors
    def stats():
        day = _requested_day() or container.clock().date()
        return jsonify({"success": True, "stats": stats_json(attendance.daily_stats(day))})
