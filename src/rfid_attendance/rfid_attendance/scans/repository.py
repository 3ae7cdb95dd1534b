from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence, Set, Union

from .model import RawScan


class ScanRepository(Protocol):
    """Raw badge reads stored in ``rfid_scans`` by scanner bridges."""

    def record(
        self, tag: str, *, student_id: Optional[Union[int, str]] = None, processed: bool = False
    ) -> RawScan:
        raise NotImplementedError

    def fetch_new(self, after_id: Union[int, str, None] = None) -> Sequence[RawScan]:
        """Unprocessed scans, oldest first."""

        raise NotImplementedError

    def mark_processed(self, scan: RawScan) -> bool:
        raise NotImplementedError

    def tags_scanned_between(self, start: datetime, end: datetime) -> Set[str]:
        raise NotImplementedError
