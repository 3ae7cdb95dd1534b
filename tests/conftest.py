from __future__ import annotations

from datetime import datetime, timedelta

import pytest


class ManualClock:
    """Wall clock and monotonic clock that only move when a test says so."""

    def __init__(self, start: datetime):
        self.now = start
        self.seconds = 1000.0

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.seconds

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        self.seconds += seconds

    def set(self, when: datetime) -> None:
        self.seconds += max(0.0, (when - self.now).total_seconds())
        self.now = when


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 2, 7, 45, 0)


@pytest.fixture
def clock(fixed_now) -> ManualClock:
    return ManualClock(fixed_now)
