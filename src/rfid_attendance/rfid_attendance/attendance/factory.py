from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time

from .strategies.base import AttendanceStrategy
from .strategies.late_strategy import LateStrategy
from .strategies.present_strategy import PresentStrategy


@dataclass
class AttendanceStrategyFactory:
    """Factory Pattern: choose appropriate strategy based on rules."""

    def for_scan(self, *, observed_at: datetime, late_after: time) -> AttendanceStrategy:
        # Local wall-clock time strictly after the cutoff is late; the cutoff itself is on time.
        if observed_at.time() > late_after:
            return LateStrategy()
        return PresentStrategy()
