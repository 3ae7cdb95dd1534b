from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from ..common.responses import json_errors
from ..common.validators import require_non_empty
from ..container import Container
from .model import NotificationRecord


def notification_json(record: Optional[NotificationRecord]) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    return {
        "id": record.notification_id,
        "student_rfid": record.student_tag,
        "student_name": record.student_name,
        "parent_phone": record.parent_phone,
        "message": record.message,
        "timestamp": record.sent_at.isoformat(timespec="seconds"),
        "status": record.status,
    }


def register(app: Flask, container: Container) -> None:
    notifications = container.notification_service

    @app.route("/api/notifications", methods=["GET"], endpoint="api_notifications")
    @json_errors
    def list_notifications():
        items = [notification_json(n) for n in notifications.list_recent()]
        return jsonify({"success": True, "notifications": items})

    @app.route("/api/notifications", methods=["POST"], endpoint="api_notifications_send")
    @json_errors
    def send_notification():
        data = request.get_json(silent=True) or {}
        tag = require_non_empty(str(data.get("rfid") or data.get("tag") or ""), "RFID")
        delivery = notifications.notify_parent(tag)
        message = f"Notification sent to parent of {delivery.record.student_name}"
        if not delivery.delivered:
            message += " (offline mode)"
        return jsonify({"success": True, "message": message, "notification": notification_json(delivery.record)})
