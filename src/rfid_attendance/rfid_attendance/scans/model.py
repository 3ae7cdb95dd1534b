from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Union

from ..attendance.model import AttendanceRecord
from ..core.enums import MessageLevel, ScanOutcome, ScanSourceKind
from ..notifications.model import NotificationRecord
from ..students.model import Student


@dataclass(frozen=True)
class ScanEvent:
    """One raw badge read, consumed once by the reconciler."""

    tag: str
    observed_at: datetime
    source_id: str
    source_kind: ScanSourceKind = ScanSourceKind.MANUAL


@dataclass(frozen=True)
class RawScan:
    """Row of the ``rfid_scans`` table."""

    scan_id: Optional[Union[int, str]]
    tag: str
    scanned_at: Optional[str]
    processed: bool = False
    student_id: Optional[Union[int, str]] = None


@dataclass(frozen=True)
class ScanResult:
    """What happened to a scan, plus the message shown to the operator.

    ``level`` is None for silent rejections.
    """

    outcome: ScanOutcome
    message: str = ""
    level: Optional[MessageLevel] = None
    tag: Optional[str] = None
    student: Optional[Student] = None
    record: Optional[AttendanceRecord] = None
    notification: Optional[NotificationRecord] = None
    wait_seconds: Optional[int] = None

    @property
    def accepted(self) -> bool:
        return self.outcome in (ScanOutcome.ACCEPTED, ScanOutcome.ACCEPTED_OFFLINE)


@dataclass
class ScanStats:
    accepted: int = 0
    present: int = 0
    late: int = 0
    offline: int = 0
    already_marked: int = 0
    unknown: int = 0
    rejected: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class ReconcilerState:
    """Process-wide scan state. Not persisted: cooldowns reset on restart."""

    cooldown_by_tag: Dict[str, float] = field(default_factory=dict)
    last_tag_seen: Optional[str] = None
    last_tag_seen_length: int = 0
    last_tag_seen_at: float = 0.0
    processing: bool = False
    last_scanned_student: Optional[Student] = None
    offline_attendance: List[AttendanceRecord] = field(default_factory=list)
    stats: ScanStats = field(default_factory=ScanStats)
