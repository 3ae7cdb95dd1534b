from __future__ import annotations

import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.rfid_attendance.rfid_attendance.database.connection import DBConfig, ScanDatabase
from src.rfid_attendance.rfid_attendance.scan_servers.mysql_server import MySQLScanRepository


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    conn = ScanDatabase(DBConfig.from_dict(settings.SCAN_DB_CONFIG))
    scans = MySQLScanRepository(conn)
    scans.ensure_schema()
    print(f"OK: rfid_scans ready -> {conn.config.describe()} (latest id={scans.latest_id()})")


if __name__ == "__main__":
    main()
