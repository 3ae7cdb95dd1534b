from __future__ import annotations

import logging
import queue
import random
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import requests

from ..common.datetime_utils import now_local, parse_timestamp_or
from ..core.constants import (
    DEFAULT_REMOTE_TIMEOUT_SECONDS,
    SIMULATED_REGISTERED_TAGS,
    SIMULATED_UNREGISTERED_TAGS,
    TABLE_RFID_SCANS,
)
from ..core.enums import ScanSourceKind
from ..core.exceptions import StoreError
from .model import ScanEvent, ScanResult
from .repository import ScanRepository

logger = logging.getLogger(__name__)

ScanHandler = Callable[[ScanEvent], ScanResult]
RowHandler = Callable[[str, str, Dict[str, Any]], None]


def _observed_at(value: Any, fallback: datetime) -> datetime:
    parsed = parse_timestamp_or(value, lambda: fallback)
    # Rows stamped in UTC are compared against the local school day.
    return parsed.astimezone().replace(tzinfo=None) if parsed.tzinfo else parsed


class SimulatedScanSource:
    """Test generator mixing registered and unregistered badge ids."""

    source_id = "simulator"

    def __init__(
        self,
        *,
        tags: Sequence[str] = SIMULATED_REGISTERED_TAGS + SIMULATED_UNREGISTERED_TAGS,
        rng: Optional[random.Random] = None,
        clock=now_local,
    ):
        self._tags = tuple(tags)
        self._rng = rng or random.Random()
        self._clock = clock

    def next_event(self) -> ScanEvent:
        return ScanEvent(
            tag=self._rng.choice(self._tags),
            observed_at=self._clock(),
            source_id=self.source_id,
            source_kind=ScanSourceKind.SIMULATED,
        )

    def poll(self, handle: ScanHandler) -> int:
        handle(self.next_event())
        return 1


@dataclass(frozen=True)
class ChangeMessage:
    table: str
    event: str
    row: Dict[str, Any]


class RealtimeChannel:
    """Publish/subscribe feed of table changes, delivered through a queue.

    Publishers (the webhook endpoint) only enqueue; ``drain``/``dispatch_next``
    hand messages to subscribers one at a time on the consuming thread, so
    scan handling stays serialized. Delivery is at-least-once and unordered
    across tables; subscribers must tolerate repeats.
    """

    WILDCARD = "*"

    def __init__(self, maxsize: int = 0):
        self._queue: "queue.Queue[ChangeMessage]" = queue.Queue(maxsize=maxsize)
        self._subscribers: Dict[Tuple[str, str], List[RowHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, table: str, event: str, handler: RowHandler) -> Callable[[], None]:
        key = (table, event.lower())
        with self._lock:
            self._subscribers[key].append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._subscribers.get(key, []):
                    self._subscribers[key].remove(handler)

        return unsubscribe

    def publish(self, table: str, event: str, row: Dict[str, Any]) -> None:
        self._queue.put(ChangeMessage(table=table, event=event.lower(), row=dict(row or {})))

    def pending(self) -> int:
        return self._queue.qsize()

    def dispatch_next(self, timeout: Optional[float] = None) -> bool:
        try:
            message = self._queue.get(timeout=timeout) if timeout else self._queue.get_nowait()
        except queue.Empty:
            return False
        try:
            with self._lock:
                handlers = list(self._subscribers.get((message.table, message.event), []))
                handlers += self._subscribers.get((message.table, self.WILDCARD), [])
            for handler in handlers:
                try:
                    handler(message.table, message.event, message.row)
                except Exception:
                    logger.exception("Realtime handler failed for %s %s", message.table, message.event)
        finally:
            self._queue.task_done()
        return True

    def drain(self, max_items: Optional[int] = None) -> int:
        count = 0
        while max_items is None or count < max_items:
            if not self.dispatch_next():
                break
            count += 1
        return count


class RealtimeScanSource:
    """Feeds inserts on ``rfid_scans`` from the realtime channel into the reconciler."""

    source_id = "realtime"

    def __init__(self, channel: RealtimeChannel, handle: ScanHandler, *, clock=now_local):
        self._handle = handle
        self._clock = clock
        self.results: "queue.Queue[ScanResult]" = queue.Queue(maxsize=100)
        self._unsubscribe = channel.subscribe(TABLE_RFID_SCANS, "insert", self._on_insert)

    def close(self) -> None:
        self._unsubscribe()

    def _on_insert(self, table: str, event: str, row: Dict[str, Any]) -> None:
        tag = row.get("rfid_tag")
        if not tag:
            logger.error("Invalid RFID scan data received: %r", row)
            return
        now = self._clock()
        result = self._handle(
            ScanEvent(
                tag=str(tag),
                observed_at=_observed_at(row.get("scanned_at"), now),
                source_id=self.source_id,
                source_kind=ScanSourceKind.REALTIME,
            )
        )
        if self.results.full():
            self.results.get_nowait()
        self.results.put_nowait(result)


class TablePollingSource:
    """Polls unprocessed rows of ``rfid_scans`` and marks them processed once handled."""

    source_id = "rfid_scans-poller"

    def __init__(self, scans: ScanRepository, *, clock=now_local):
        self._scans = scans
        self._clock = clock
        self.cursor: Union[int, str, None] = None

    def poll(self, handle: ScanHandler) -> int:
        try:
            rows = self._scans.fetch_new(self.cursor)
        except StoreError as e:
            logger.error("fetch new RFID scans failed: %s", e)
            return 0

        for raw in rows:
            if not raw.tag:
                logger.error("Invalid RFID scan data received: %r", raw)
            else:
                handle(
                    ScanEvent(
                        tag=raw.tag,
                        observed_at=_observed_at(raw.scanned_at, self._clock()),
                        source_id=self.source_id,
                        source_kind=ScanSourceKind.POLLING,
                    )
                )
            try:
                self._scans.mark_processed(raw)
            except StoreError as e:
                logger.error("mark RFID scan %s processed failed: %s", raw.scan_id, e)
            if isinstance(raw.scan_id, int):
                self.cursor = raw.scan_id if self.cursor is None else max(int(self.cursor), raw.scan_id)
        return len(rows)


class HelperPollingSource:
    """Polls a local helper scan server (file or MySQL backed) over HTTP."""

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_REMOTE_TIMEOUT_SECONDS,
        clock=now_local,
    ):
        self._base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout
        self._clock = clock
        self.cursor: Optional[int] = None
        self.epoch: Optional[str] = None
        self.source_id = f"helper:{self._base_url}"

    def fetch(self) -> List[ScanEvent]:
        params = None
        if self.cursor is not None:
            params = {"since": self.cursor}
            if self.epoch:
                params["epoch"] = self.epoch
        try:
            resp = self._session.get(f"{self._base_url}/api/rfid/scans", params=params, timeout=self._timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("RFID helper %s unreachable: %s", self._base_url, e)
            return []

        if not payload.get("success", False):
            logger.warning("RFID helper %s error: %s", self._base_url, payload.get("error"))
            return []

        epoch = payload.get("epoch")
        if epoch and epoch != self.epoch:
            if self.epoch is not None:
                # Server cursor was reset; its ids restart and our cursor no longer applies.
                logger.info("RFID helper %s reset its scan cursor", self._base_url)
                self.cursor = None
            self.epoch = str(epoch)

        events = []
        for scan in payload.get("scans") or []:
            tag = scan.get("rfid") or scan.get("rfid_tag") or scan.get("tag")
            if scan.get("id") is not None:
                scan_id = int(scan["id"])
                self.cursor = scan_id if self.cursor is None else max(self.cursor, scan_id)
            if not tag:
                continue
            events.append(
                ScanEvent(
                    tag=str(tag),
                    observed_at=_observed_at(scan.get("timestamp"), self._clock()),
                    source_id=self.source_id,
                    source_kind=ScanSourceKind.POLLING,
                )
            )
        return events

    def poll(self, handle: ScanHandler) -> int:
        events = self.fetch()
        for event in events:
            handle(event)
        return len(events)
