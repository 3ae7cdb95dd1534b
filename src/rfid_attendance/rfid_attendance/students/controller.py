from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from ..common.responses import json_errors
from ..core.exceptions import ValidationError
from ..container import Container
from .model import Student

# Request field -> Student field; 'rfid' and 'avatar' are the names the dashboard sends.
_FORM_FIELDS = {
    "name": "name",
    "rfid": "tag_id",
    "tag_id": "tag_id",
    "grade": "grade",
    "parent_phone": "parent_phone",
    "parent_name": "parent_name",
    "student_number": "student_number",
    "avatar": "avatar_url",
    "avatar_url": "avatar_url",
}


def student_json(student: Optional[Student]) -> Optional[Dict[str, Any]]:
    if student is None:
        return None
    return {
        "id": student.student_id,
        "name": student.name,
        "rfid": student.tag_id,
        "grade": student.grade,
        "parent_phone": student.parent_phone,
        "parent_name": student.parent_name,
        "student_number": student.student_number,
        "avatar": student.avatar_url,
        "initials": student.initials,
        "archived": student.archived,
        "archived_at": student.archived_at,
    }


def _form_values() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return {_FORM_FIELDS[k]: v for k, v in data.items() if k in _FORM_FIELDS}


def register(app: Flask, container: Container) -> None:
    students = container.student_service

    @app.route("/api/students", methods=["GET"], endpoint="api_students")
    @json_errors
    def list_students():
        roster = students.browse(
            search=request.args.get("q") or request.args.get("search"),
            grade=request.args.get("grade"),
            sort=request.args.get("sort"),
        )
        return jsonify({"success": True, "students": [student_json(s) for s in roster]})

    @app.route("/api/students/archived", methods=["GET"], endpoint="api_students_archived")
    @json_errors
    def list_archived():
        return jsonify({"success": True, "students": [student_json(s) for s in students.list_archived()]})

    @app.route("/api/students", methods=["POST"], endpoint="api_students_add")
    @json_errors
    def add_student():
        student = students.add(_form_values())
        return jsonify({"success": True, "message": "Student added successfully", "student": student_json(student)}), 201

    @app.route("/api/students/<student_id>", methods=["GET"], endpoint="api_student")
    @json_errors
    def get_student(student_id: str):
        return jsonify({"success": True, "student": student_json(students.get(student_id))})

    @app.route("/api/students/<student_id>", methods=["PATCH", "PUT"], endpoint="api_students_update")
    @json_errors
    def update_student(student_id: str):
        student = students.update(student_id, _form_values())
        return jsonify({"success": True, "message": "Student updated successfully", "student": student_json(student)})

    @app.route("/api/students/<student_id>/archive", methods=["POST"], endpoint="api_students_archive")
    @json_errors
    def archive_student(student_id: str):
        student = students.archive(student_id)
        return jsonify({"success": True, "message": f"{student.name} archived", "student": student_json(student)})

    @app.route("/api/students/<student_id>/unarchive", methods=["POST"], endpoint="api_students_unarchive")
    @json_errors
    def unarchive_student(student_id: str):
        student = students.unarchive(student_id)
        return jsonify({"success": True, "message": f"{student.name} restored", "student": student_json(student)})
