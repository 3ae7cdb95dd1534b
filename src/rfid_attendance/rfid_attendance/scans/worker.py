from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol, Sequence

from ..core.constants import DEFAULT_POLL_INTERVAL_SECONDS
from .sources import RealtimeChannel, ScanHandler

logger = logging.getLogger(__name__)


class PollingSource(Protocol):
    def poll(self, handle: ScanHandler) -> int:
        raise NotImplementedError


class ScanWorker:
    """Background thread feeding pollers and the realtime queue into one handler.

    All sources are serviced from this single thread, so scans reach the
    reconciler one after another.
    """

    def __init__(
        self,
        handle: ScanHandler,
        *,
        sources: Sequence[PollingSource] = (),
        channel: Optional[RealtimeChannel] = None,
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        name: str = "scan-worker",
    ):
        self._handle = handle
        self.name = name
        self._sources = list(sources)
        self._channel = channel
        self._interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info("%s started (%d pollers, interval %.1fs)", self.name, len(self._sources), self._interval)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("%s stopped", self.name)

    def run_once(self) -> int:
        """One pass over every source; returns how many items were handled."""
        handled = 0
        if self._channel is not None:
            handled += self._channel.drain()
        for source in self._sources:
            try:
                handled += source.poll(self._handle)
            except Exception:
                logger.exception("Polling %s failed", type(source).__name__)
        return handled

    def _run(self) -> None:
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self._interval)
