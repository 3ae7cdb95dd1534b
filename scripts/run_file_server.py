"""Serve a text file of badge reads (one tag per line) on /api/rfid/scans."""

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

from src.rfid_attendance.rfid_attendance.scan_servers.file_server import FileScanReader, create_app


def main() -> None:
    settings = importlib.import_module(get_settings_module())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--scan-file", default=settings.SCAN_FILE)
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=3001)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    reader = FileScanReader(args.scan_file)
    logging.getLogger(__name__).info("RFID file server on %s:%s watching %s", args.host, args.port, reader.scan_file)
    create_app(reader).run(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
