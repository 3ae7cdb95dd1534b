"""Add demo students holding the simulator's registered badges (STU001..STU005)."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.rfid_attendance.rfid_attendance.container import build_store
from src.rfid_attendance.rfid_attendance.core.constants import SIMULATED_REGISTERED_TAGS
from src.rfid_attendance.rfid_attendance.core.exceptions import ValidationError
from src.rfid_attendance.rfid_attendance.students.service import StudentService
from src.rfid_attendance.rfid_attendance.students.table_student_repository import TableStudentRepository

DEMO_NAMES = ("Ana Santos", "Ben Reyes", "Carla Cruz", "Diego Lim", "Ella Tan")


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    store = build_store(settings.STORAGE_CONFIG)
    students = StudentService(TableStudentRepository(store))

    added = 0
    for number, (tag, name) in enumerate(zip(SIMULATED_REGISTERED_TAGS, DEMO_NAMES), start=1):
        try:
            students.add(
                {
                    "name": name,
                    "tag_id": tag,
                    "grade": str(6 + number % 3),
                    "parent_phone": f"+63917000000{number}",
                    "student_number": f"2026-{number:04d}",
                }
            )
            added += 1
        except ValidationError as e:
            print(f"skip {tag}: {e}")

    print(f"OK: Seeded {added} students -> {store.backend_name}")


if __name__ == "__main__":
    main()
