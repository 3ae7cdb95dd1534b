from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from typing import FrozenSet, Iterable, Optional

from ..common.datetime_utils import parse_clock_time
from ..core.constants import (
    DEFAULT_BLOCKED_TAGS,
    DEFAULT_COOLDOWN_SECONDS,
    DEFAULT_KEYSTROKE_SETTLE_SECONDS,
    DEFAULT_LATE_AFTER,
    DEFAULT_MANUAL_SETTLE_SECONDS,
    DEFAULT_PARTIAL_READ_WINDOW_SECONDS,
    DEFAULT_SAME_TAG_WINDOW_SECONDS,
    PHYSICAL_TAG_LENGTH,
)
from ..core.enums import ScanSourceKind


@dataclass(frozen=True)
class ScanPolicy:
    """Tunable thresholds for accepting scans.

    The partial-read and same-tag windows are heuristics for keyboard-wedge
    scanners that deliver a tag in several chunks; adjust them per reader.
    ``physical_tag_length=None`` disables truncation of keystroke reads.
    """

    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS
    partial_read_window_seconds: float = DEFAULT_PARTIAL_READ_WINDOW_SECONDS
    same_tag_window_seconds: float = DEFAULT_SAME_TAG_WINDOW_SECONDS
    keystroke_settle_seconds: float = DEFAULT_KEYSTROKE_SETTLE_SECONDS
    manual_settle_seconds: float = DEFAULT_MANUAL_SETTLE_SECONDS
    late_after: time = DEFAULT_LATE_AFTER
    blocked_tags: FrozenSet[str] = DEFAULT_BLOCKED_TAGS
    physical_tag_length: Optional[int] = PHYSICAL_TAG_LENGTH

    def settle_seconds(self, kind: ScanSourceKind) -> float:
        if kind == ScanSourceKind.KEYSTROKE:
            return self.keystroke_settle_seconds
        if kind in (ScanSourceKind.MANUAL, ScanSourceKind.SIMULATED):
            return self.manual_settle_seconds
        return 0.0

    @classmethod
    def from_config(cls, cfg: Optional[dict]) -> "ScanPolicy":
        cfg = dict(cfg or {})
        late_after = cfg.get("late_after", DEFAULT_LATE_AFTER)
        if isinstance(late_after, str):
            late_after = parse_clock_time(late_after)
        blocked: Iterable[str] = cfg.get("blocked_tags", DEFAULT_BLOCKED_TAGS)
        if isinstance(blocked, str):
            blocked = blocked.split(",")
        physical = cfg.get("physical_tag_length", PHYSICAL_TAG_LENGTH)
        return cls(
            cooldown_seconds=float(cfg.get("cooldown_seconds", DEFAULT_COOLDOWN_SECONDS)),
            partial_read_window_seconds=float(
                cfg.get("partial_read_window_seconds", DEFAULT_PARTIAL_READ_WINDOW_SECONDS)
            ),
            same_tag_window_seconds=float(cfg.get("same_tag_window_seconds", DEFAULT_SAME_TAG_WINDOW_SECONDS)),
            keystroke_settle_seconds=float(cfg.get("keystroke_settle_seconds", DEFAULT_KEYSTROKE_SETTLE_SECONDS)),
            manual_settle_seconds=float(cfg.get("manual_settle_seconds", DEFAULT_MANUAL_SETTLE_SECONDS)),
            late_after=late_after,
            blocked_tags=frozenset(t.strip() for t in blocked if t and t.strip()),
            physical_tag_length=int(physical) if physical else None,
        )
