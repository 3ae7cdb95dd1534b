from __future__ import annotations

import time as _time
from datetime import date, datetime, time


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_clock_time(value: str) -> time:
    """Parse HH:MM or HH:MM:SS into a time of day."""
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time string: {value!r}")
    seconds = int(parts[2]) if len(parts) == 3 else 0
    return time(hour=int(parts[0]), minute=int(parts[1]), second=seconds)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def monotonic() -> float:
    return _time.monotonic()


def to_iso(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def parse_timestamp(value) -> datetime | None:
    """Accept datetimes or ISO strings as returned by the stores."""
    if value is None or isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def parse_timestamp_or(value, fallback) -> datetime:
    """``parse_timestamp`` for stored rows: a missing or malformed value yields ``fallback()``."""
    try:
        parsed = parse_timestamp(value)
    except ValueError:
        parsed = None
    return parsed if parsed is not None else fallback()
