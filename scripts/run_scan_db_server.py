"""Serve new rows of a MySQL rfid_scans table on /api/rfid/scans."""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.rfid_attendance.rfid_attendance.database.connection import DBConfig, ScanDatabase
from src.rfid_attendance.rfid_attendance.scan_servers.mysql_server import create_app


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=3001)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    conn = ScanDatabase(DBConfig.from_dict(settings.SCAN_DB_CONFIG))
    logging.getLogger(__name__).info("RFID database server on %s:%s reading %s", args.host, args.port, conn.database)
    create_app(conn).run(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
