from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

StudentId = Union[int, str]


@dataclass(frozen=True)
class Student:
    """Domain entity: a student and the badge assigned to them.

    Note: Plain data object (no storage access).
    """

    student_id: StudentId
    name: str
    tag_id: Optional[str]
    grade: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_name: Optional[str] = None
    archived: bool = False
    avatar_url: Optional[str] = None
    student_number: Optional[str] = None
    archived_at: Optional[str] = None

    @property
    def initials(self) -> str:
        return "".join(part[0] for part in self.name.split() if part).upper()
