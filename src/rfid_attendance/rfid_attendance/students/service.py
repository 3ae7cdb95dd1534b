from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Sequence

from ..common.datetime_utils import now_local, to_iso
from ..common.validators import optional_tag, require_non_empty
from ..core.exceptions import NotFoundError, ValidationError
from .model import Student, StudentId
from .repository import StudentRepository

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = (
    "name",
    "tag_id",
    "grade",
    "parent_phone",
    "parent_name",
    "avatar_url",
    "student_number",
)

# Students without a numeric grade sort after every real grade.
_NO_GRADE = 99
_SORTS = ("grade-asc", "grade-desc", "name-asc", "name-desc")


def _grade_number(student: Student) -> int:
    try:
        return int(str(student.grade or "").strip())
    except ValueError:
        return _NO_GRADE


def _name_key(student: Student) -> str:
    return student.name.casefold()


class StudentService:
    """Use case: the student directory (lookup by badge, roster management).

    The directory owns the badge uniqueness rule: a tag may belong to at most
    one non-archived student. Lookups never guess; a miss or an ambiguous
    prefix resolves to ``None``.
    """

    def __init__(self, students: StudentRepository, *, clock=now_local):
        self._students = students
        self._clock = clock

    def find_by_tag_prefix(self, tag: str) -> Optional[Student]:
        tag = (tag or "").strip()
        if not tag:
            return None

        matches = [
            s
            for s in self._students.find_by_tag_prefix(tag, limit=2)
            if not s.archived and (s.tag_id or "").casefold().startswith(tag.casefold())
        ]
        if len(matches) > 1:
            logger.warning("RFID %s matches %d students; treating as unknown", tag, len(matches))
            return None
        return matches[0] if matches else None

    def get(self, student_id: StudentId) -> Student:
        student = self._students.get_by_id(student_id)
        if not student:
            raise NotFoundError("Student not found")
        return student

    def list_active(self) -> Sequence[Student]:
        return self._students.list_students(archived=False)

    def list_archived(self) -> Sequence[Student]:
        return self._students.list_students(archived=True)

    def browse(
        self, *, search: Optional[str] = None, grade: Optional[str] = None, sort: Optional[str] = None
    ) -> Sequence[Student]:
        """Active roster filtered by grade and a free-text term, optionally sorted.

        ``search`` matches name, tag, student number, grade or parent name
        (case-insensitive substring). ``sort`` is one of ``grade-asc`` (grade,
        then name), ``grade-desc``, ``name-asc`` or ``name-desc``.
        """
        if sort and sort not in _SORTS:
            raise ValidationError(f"sort must be one of: {', '.join(_SORTS)}")

        roster = list(self.list_active())
        if grade and grade.strip().lower() != "all":
            roster = [s for s in roster if str(s.grade or "").strip() == grade.strip()]
        term = (search or "").strip().casefold()
        if term:
            roster = [
                s
                for s in roster
                if any(
                    term in str(value).casefold()
                    for value in (s.name, s.tag_id, s.student_number, s.grade, s.parent_name)
                    if value
                )
            ]

        if sort == "grade-asc":
            roster.sort(key=lambda s: (_grade_number(s), _name_key(s)))
        elif sort == "grade-desc":
            roster.sort(key=_name_key)
            roster.sort(key=_grade_number, reverse=True)
        elif sort:
            roster.sort(key=_name_key, reverse=sort == "name-desc")
        return roster

    def _ensure_tag_free(self, tag: Optional[str], *, exclude_id: Optional[StudentId] = None) -> None:
        if not tag:
            return
        for other in self._students.find_by_tag(tag):
            if other.archived or str(other.student_id) == str(exclude_id):
                continue
            if (other.tag_id or "").casefold() == tag.casefold():
                raise ValidationError(f'RFID "{tag}" is already assigned to another student')

    def _clean(self, values: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = {k: values[k] for k in _EDITABLE_FIELDS if k in values}
        if "name" in cleaned:
            cleaned["name"] = require_non_empty(cleaned["name"], "Name")
        if "tag_id" in cleaned:
            cleaned["tag_id"] = optional_tag(cleaned["tag_id"])
        if cleaned.get("grade") is not None:
            cleaned["grade"] = str(cleaned["grade"]).strip()
        return cleaned

    def add(self, values: Dict[str, Any]) -> Student:
        if "name" not in values:
            raise ValidationError("Name is required")
        cleaned = self._clean(values)
        self._ensure_tag_free(cleaned.get("tag_id"))
        student = self._students.create({**cleaned, "archived": False})
        logger.info("Student added: %s (RFID: %s)", student.name, student.tag_id)
        return student

    def update(self, student_id: StudentId, values: Dict[str, Any]) -> Student:
        current = self.get(student_id)
        cleaned = self._clean(values)
        if not cleaned:
            return current

        # Archived records may keep a tag that has since been reassigned.
        if cleaned.get("tag_id") and not current.archived:
            self._ensure_tag_free(cleaned["tag_id"], exclude_id=student_id)

        updated = self._students.update(student_id, cleaned)
        if not updated:
            raise NotFoundError("Student not found")
        return updated

    def archive(self, student_id: StudentId, *, now: Optional[datetime] = None) -> Student:
        self.get(student_id)
        now = now or self._clock()
        updated = self._students.update(student_id, {"archived": True, "archived_at": to_iso(now)})
        if not updated:
            raise NotFoundError("Student not found")
        return updated

    def unarchive(self, student_id: StudentId) -> Student:
        current = self.get(student_id)
        # Returning to the active roster must not create a duplicate tag.
        self._ensure_tag_free(current.tag_id, exclude_id=student_id)
        updated = self._students.update(student_id, {"archived": False, "archived_at": None})
        if not updated:
            raise NotFoundError("Student not found")
        return updated
