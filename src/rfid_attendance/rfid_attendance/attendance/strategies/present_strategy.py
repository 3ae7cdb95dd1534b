from __future__ import annotations

from datetime import datetime, time

from ...core.enums import AttendanceStatus
from .base import AttendanceStrategy, StatusDecision


class PresentStrategy(AttendanceStrategy):
    """Scan at or before the cutoff."""

    def decide(self, *, observed_at: datetime, late_after: time) -> StatusDecision:
        return StatusDecision(status=AttendanceStatus.PRESENT)
