from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, Sequence

from .model import Student, StudentId


class StudentRepository(Protocol):
    """Repository interface for students.

    Note (DIP): the service layer depends on this interface, not on a concrete store.
    """

    def get_by_id(self, student_id: StudentId) -> Optional[Student]:
        raise NotImplementedError

    def get_many(self, student_ids: Sequence[StudentId]) -> Sequence[Student]:
        raise NotImplementedError

    def find_by_tag_prefix(self, prefix: str, *, limit: int = 2) -> Sequence[Student]:
        """Non-archived students whose tag starts with ``prefix`` (case-insensitive)."""

        raise NotImplementedError

    def find_by_tag(self, tag: str) -> Sequence[Student]:
        """Non-archived students whose tag equals ``tag`` ignoring case."""

        raise NotImplementedError

    def list_students(self, *, archived: bool) -> Sequence[Student]:
        raise NotImplementedError

    def create(self, values: Dict[str, Any]) -> Student:
        raise NotImplementedError

    def update(self, student_id: StudentId, values: Dict[str, Any]) -> Optional[Student]:
        raise NotImplementedError
