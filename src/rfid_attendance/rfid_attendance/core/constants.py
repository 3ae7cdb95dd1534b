"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from datetime import time

DEFAULT_COOLDOWN_SECONDS = 5.0
DEFAULT_PARTIAL_READ_WINDOW_SECONDS = 1.0
DEFAULT_SAME_TAG_WINDOW_SECONDS = 3.0
DEFAULT_KEYSTROKE_SETTLE_SECONDS = 0.5
DEFAULT_MANUAL_SETTLE_SECONDS = 1.5
DEFAULT_LATE_AFTER = time(8, 0, 0)
DEFAULT_BLOCKED_TAGS = frozenset({"38103006"})
DEFAULT_REMOTE_TIMEOUT_SECONDS = 10
DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_SIMULATION_INTERVAL_SECONDS = 10.0
MIN_SIMULATION_INTERVAL_SECONDS = 1.0

PHYSICAL_TAG_LENGTH = 8
MANUAL_TAG_PATTERN = r"^[A-Za-z0-9_-]{3,32}$"

# PostgREST reports Postgres "undefined_column" with this code.
UNDEFINED_COLUMN_CODE = "42703"

TABLE_STUDENTS = "students"
TABLE_ATTENDANCE = "attendance"
TABLE_NOTIFICATIONS = "student_sms"
TABLE_RFID_SCANS = "rfid_scans"

LOCAL_STORAGE_KEYS = {
    TABLE_STUDENTS: "app.students",
    TABLE_ATTENDANCE: "app.attendance",
    TABLE_NOTIFICATIONS: "app.notifications",
    TABLE_RFID_SCANS: "app.rfid_scans",
}

SIMULATED_REGISTERED_TAGS = ("STU001", "STU002", "STU003", "STU004", "STU005")
SIMULATED_UNREGISTERED_TAGS = ("UNR001", "UNR002", "UNR003", "UNR004", "UNR005")
