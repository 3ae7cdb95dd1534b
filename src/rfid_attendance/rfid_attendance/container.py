from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from .attendance.factory import AttendanceStrategyFactory
from .attendance.service import AttendanceService
from .attendance.table_attendance_repository import TableAttendanceRepository
from .common.datetime_utils import now_local
from .core.constants import DEFAULT_POLL_INTERVAL_SECONDS, DEFAULT_REMOTE_TIMEOUT_SECONDS
from .core.enums import StorageBackend
from .core.exceptions import StoreError
from .database.local_store import LocalTableStore
from .database.store import TableStore
from .notifications.service import NotificationService
from .notifications.table_notification_repository import TableNotificationRepository
from .scans.policy import ScanPolicy
from .scans.reconciler import ScanReconciler
from .scans.service import ScanService
from .scans.sources import HelperPollingSource, RealtimeChannel, RealtimeScanSource, TablePollingSource
from .scans.table_scan_repository import TableScanRepository
from .scans.worker import ScanWorker
from .students.service import StudentService
from .students.table_student_repository import TableStudentRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Container:
    store: TableStore

    students_repo: TableStudentRepository
    attendance_repo: TableAttendanceRepository
    notifications_repo: TableNotificationRepository
    scans_repo: TableScanRepository

    student_service: StudentService
    attendance_service: AttendanceService
    notification_service: NotificationService
    reconciler: ScanReconciler
    scan_service: ScanService

    channel: RealtimeChannel
    realtime_source: RealtimeScanSource
    worker: ScanWorker
    clock: Callable[[], datetime] = now_local


def build_store(storage_config: Optional[dict]) -> TableStore:
    """Choose the storage backend once; remote needs URL and key, otherwise local."""
    cfg = dict(storage_config or {})
    backend = str(cfg.get("backend") or StorageBackend.REMOTE.value).lower()
    local_path = cfg.get("local_path") or None

    if backend == StorageBackend.REMOTE.value:
        url, key = cfg.get("url"), cfg.get("key")
        if url and key:
            # Imported lazily so local-only deployments don't need the client configured.
            from .database.supabase_store import SupabaseConfig, SupabaseTableStore

            try:
                store = SupabaseTableStore.connect(
                    SupabaseConfig(
                        url=str(url),
                        key=str(key),
                        timeout=int(cfg.get("timeout") or DEFAULT_REMOTE_TIMEOUT_SECONDS),
                    )
                )
            except StoreError as e:
                logger.warning("Supabase unavailable, using local storage: %s", e)
            else:
                if store.ping():
                    logger.info("Using Supabase storage at %s", url)
                    return store
                logger.warning("Supabase at %s not reachable, using local storage", url)
        else:
            logger.warning("Supabase URL/key not configured, using local storage")

    logger.info("Using local storage (%s)", local_path or "in memory")
    return LocalTableStore(local_path)


def build_container(
    *,
    storage_config: Optional[dict] = None,
    scan_policy: Optional[dict] = None,
    worker_config: Optional[dict] = None,
    store: Optional[TableStore] = None,
    clock=None,
    monotonic_clock=None,
    sleep=None,
) -> Container:
    store = store or build_store(storage_config)
    worker_cfg = dict(worker_config or {})
    clock = clock or now_local
    clock_kw = {"clock": clock}

    students_repo = TableStudentRepository(store)
    attendance_repo = TableAttendanceRepository(store)
    notifications_repo = TableNotificationRepository(store)
    scans_repo = TableScanRepository(store, **clock_kw)

    student_service = StudentService(students_repo, **clock_kw)
    attendance_service = AttendanceService(attendance_repo, students_repo, scans_repo)
    notification_service = NotificationService(notifications_repo, student_service, **clock_kw)

    reconciler_kw = {}
    if monotonic_clock:
        reconciler_kw["monotonic_clock"] = monotonic_clock
    if sleep:
        reconciler_kw["sleep"] = sleep
    reconciler = ScanReconciler(
        student_service,
        attendance_repo,
        notification_service,
        policy=ScanPolicy.from_config(scan_policy),
        strategy_factory=AttendanceStrategyFactory(),
        **reconciler_kw,
    )

    channel = RealtimeChannel()
    scan_service = ScanService(reconciler, scans=scans_repo, channel=channel, **clock_kw)
    realtime_source = RealtimeScanSource(channel, reconciler.handle, **clock_kw)

    pollers: List = []
    if worker_cfg.get("poll_table"):
        pollers.append(TablePollingSource(scans_repo, **clock_kw))
    for url in worker_cfg.get("helper_urls") or []:
        pollers.append(
            HelperPollingSource(url, timeout=float(worker_cfg.get("helper_timeout", 5)), **clock_kw)
        )
    worker = ScanWorker(
        reconciler.handle,
        sources=pollers,
        channel=channel,
        interval=float(worker_cfg.get("interval", DEFAULT_POLL_INTERVAL_SECONDS)),
    )

    return Container(
        store=store,
        students_repo=students_repo,
        attendance_repo=attendance_repo,
        notifications_repo=notifications_repo,
        scans_repo=scans_repo,
        student_service=student_service,
        attendance_service=attendance_service,
        notification_service=notification_service,
        reconciler=reconciler,
        scan_service=scan_service,
        channel=channel,
        realtime_source=realtime_source,
        worker=worker,
        clock=clock,
    )
