from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """Attendance status stored in the ledger."""

    PRESENT = "present"
    LATE = "late"


class ScanSourceKind(str, Enum):
    """Where a scan event came from; drives format rules and settle delay."""

    KEYSTROKE = "keystroke"
    MANUAL = "manual"
    SIMULATED = "simulated"
    REALTIME = "realtime"
    POLLING = "polling"


class ScanOutcome(str, Enum):
    ACCEPTED = "accepted"
    ACCEPTED_OFFLINE = "accepted_offline"
    ALREADY_MARKED = "already_marked"
    UNKNOWN_TAG = "unknown_tag"
    INVALID_FORMAT = "invalid_format"
    BLOCKED = "blocked"
    COOLDOWN = "cooldown"
    PARTIAL_READ = "partial_read"
    DUPLICATE_READ = "duplicate_read"
    BUSY = "busy"
    COALESCED = "coalesced"
    FAILED = "failed"


class MessageLevel(str, Enum):
    """Severity of a user-visible message (same categories as flash())."""

    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class StorageBackend(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"
