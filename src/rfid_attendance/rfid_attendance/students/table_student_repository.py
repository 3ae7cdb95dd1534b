from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from ..core.constants import TABLE_STUDENTS
from ..database.store import Query, TableStore
from .model import Student, StudentId
from .repository import StudentRepository

# Domain field -> column name in the students table.
_COLUMNS = {
    "name": "name",
    "tag_id": "rfid",
    "grade": "grade",
    "parent_phone": "parent_phone",
    "parent_name": "parent_name",
    "archived": "archived",
    "avatar_url": "avatar",
    "student_number": "student_number",
    "archived_at": "archived_at",
}


def _to_student(row: Dict[str, Any]) -> Student:
    grade = row.get("grade")
    return Student(
        student_id=row.get("id"),
        name=str(row.get("name") or ""),
        tag_id=(str(row["rfid"]).strip() or None) if row.get("rfid") is not None else None,
        grade=str(grade) if grade is not None else None,
        parent_phone=row.get("parent_phone"),
        parent_name=row.get("parent_name"),
        archived=bool(row.get("archived", False)),
        # Older rows used an 'avatars' column.
        avatar_url=row.get("avatar") or row.get("avatars"),
        student_number=row.get("student_number"),
        archived_at=row.get("archived_at"),
    )


def _to_row(values: Dict[str, Any]) -> Dict[str, Any]:
    return {_COLUMNS[k]: v for k, v in values.items() if k in _COLUMNS}


class TableStudentRepository(StudentRepository):
    def __init__(self, store: TableStore):
        self._store = store

    def get_by_id(self, student_id: StudentId) -> Optional[Student]:
        rows = self._store.select(TABLE_STUDENTS, Query().eq("id", student_id).limit(1))
        return _to_student(rows[0]) if rows else None

    def get_many(self, student_ids: Sequence[StudentId]) -> Sequence[Student]:
        if not student_ids:
            return []
        rows = self._store.select(TABLE_STUDENTS, Query().in_("id", list(student_ids)))
        return [_to_student(r) for r in rows]

    def find_by_tag_prefix(self, prefix: str, *, limit: int = 2) -> Sequence[Student]:
        rows = self._store.select(
            TABLE_STUDENTS,
            Query().eq("archived", False).ilike_prefix("rfid", prefix).limit(limit),
        )
        return [_to_student(r) for r in rows]

    def find_by_tag(self, tag: str) -> Sequence[Student]:
        rows = self._store.select(TABLE_STUDENTS, Query().eq("archived", False).ilike_exact("rfid", tag))
        return [_to_student(r) for r in rows]

    def list_students(self, *, archived: bool) -> Sequence[Student]:
        rows = self._store.select(TABLE_STUDENTS, Query().eq("archived", archived).order("name"))
        return [_to_student(r) for r in rows]

    def create(self, values: Dict[str, Any]) -> Student:
        row = {"archived": False, **_to_row(values)}
        inserted = self._store.insert(TABLE_STUDENTS, row)
        return _to_student(inserted[0] if inserted else row)

    def update(self, student_id: StudentId, values: Dict[str, Any]) -> Optional[Student]:
        updated = self._store.update(TABLE_STUDENTS, _to_row(values), Query().eq("id", student_id))
        return _to_student(updated[0]) if updated else None
