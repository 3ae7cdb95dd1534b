from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from ..common.datetime_utils import now_local
from ..common.validators import normalize_physical_tag
from ..core.constants import DEFAULT_SIMULATION_INTERVAL_SECONDS, MIN_SIMULATION_INTERVAL_SECONDS
from ..core.enums import ScanSourceKind
from ..core.exceptions import StoreError, ValidationError
from .model import ScanEvent, ScanResult
from .reconciler import ScanReconciler
from .repository import ScanRepository
from .sources import RealtimeChannel, SimulatedScanSource
from .worker import ScanWorker

logger = logging.getLogger(__name__)


class ScanService:
    """Use case: accept scans from the HTTP surface and hand them to the reconciler."""

    def __init__(
        self,
        reconciler: ScanReconciler,
        *,
        scans: Optional[ScanRepository] = None,
        channel: Optional[RealtimeChannel] = None,
        simulator: Optional[SimulatedScanSource] = None,
        clock=now_local,
    ):
        self.reconciler = reconciler
        self._scans = scans
        self._channel = channel
        self._simulator = simulator or SimulatedScanSource(clock=clock)
        self._clock = clock
        self._simulation: Optional[ScanWorker] = None
        self._simulation_lock = threading.Lock()

    def submit(self, tag: str, *, kind: ScanSourceKind = ScanSourceKind.MANUAL, source_id: str = "manual") -> ScanResult:
        if kind == ScanSourceKind.KEYSTROKE:
            self._record_raw(tag)
        event = ScanEvent(tag=tag or "", observed_at=self._clock(), source_id=source_id, source_kind=kind)
        return self.reconciler.handle(event)

    def simulate(self) -> ScanResult:
        return self.reconciler.handle(self._simulator.next_event())

    @property
    def simulation_running(self) -> bool:
        return self._simulation is not None and self._simulation.running

    def start_simulation(self, interval: float = DEFAULT_SIMULATION_INTERVAL_SECONDS) -> bool:
        """Scan a simulated badge immediately, then every ``interval`` seconds until stopped.

        Returns False when a simulation is already running.
        """
        if interval < MIN_SIMULATION_INTERVAL_SECONDS:
            raise ValidationError(f"Simulation interval must be at least {MIN_SIMULATION_INTERVAL_SECONDS:g} seconds")
        with self._simulation_lock:
            if self.simulation_running:
                return False
            self._simulation = ScanWorker(
                self.reconciler.handle, sources=[self._simulator], interval=interval, name="scan-simulation"
            )
            self._simulation.start()
        return True

    def stop_simulation(self) -> bool:
        with self._simulation_lock:
            if not self.simulation_running:
                return False
            self._simulation.stop()
            self._simulation = None
        return True

    def publish_change(self, table: str, payload: Dict[str, Any]) -> None:
        """Queue a database change notification for the realtime subscribers."""
        if self._channel is None:
            raise ValidationError("Realtime updates are not enabled")
        event = str(payload.get("type") or payload.get("eventType") or payload.get("event") or "").lower()
        row = payload.get("record") or payload.get("new") or {}
        if not event or not isinstance(row, dict):
            raise ValidationError("Change payload needs an event type and a record")
        self._channel.publish(table, event, row)

    def state(self) -> Dict[str, Any]:
        return self.reconciler.snapshot()

    def _record_raw(self, tag: str) -> None:
        # Reader scans are logged for the daily scan count; handled here, so not re-polled.
        length = self.reconciler.policy.physical_tag_length
        tag = normalize_physical_tag(tag, length) if length else (tag or "").strip()
        if self._scans is None or not tag:
            return
        try:
            self._scans.record(tag, processed=True)
        except StoreError as e:
            logger.error("Error saving RFID scan %s: %s", tag, e)
