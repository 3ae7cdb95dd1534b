"""Helper server exposing a text file of badge reads over HTTP.

Some reader bridges append one tag per line to a file. The server numbers
non-empty lines from 1 and serves them in order; the line number is the scan
id clients pass back as ``since``.

Line numbers restart when the file is rewritten, rotated, switched or the
cursor is cleared. Each of those starts a new ``epoch``; a client sending an
old epoch gets the server cursor instead of its own ``since``.
"""

from __future__ import annotations

import logging
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, jsonify, request

from ..common.datetime_utils import now_local, to_iso

logger = logging.getLogger(__name__)


class FileScanReader:
    def __init__(self, scan_file: str | Path, *, clock=now_local):
        self._lock = threading.Lock()
        self._clock = clock
        self.scan_file = Path(scan_file)
        self.served = 0
        self.epoch = uuid.uuid4().hex
        self._signature: Optional[Tuple[int, int]] = None
        self.ensure_file()

    def ensure_file(self) -> None:
        if not self.scan_file.exists():
            self.scan_file.parent.mkdir(parents=True, exist_ok=True)
            self.scan_file.write_text("", encoding="utf-8")
            logger.info("Created RFID scan file %s", self.scan_file)

    def _read(self) -> Tuple[Optional[Tuple[int, int]], List[str]]:
        """(inode, size) of the scan file and its non-empty lines."""
        try:
            stat = self.scan_file.stat()
            content = self.scan_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None, []
        return (stat.st_ino, stat.st_size), [line.strip() for line in content.splitlines() if line.strip()]

    def _replaced(self, signature: Optional[Tuple[int, int]], line_count: int) -> bool:
        if line_count < self.served:
            return True
        previous = self._signature
        if previous is None or signature is None:
            return False
        return signature[0] != previous[0] or signature[1] < previous[1]

    def _reset(self, reason: str) -> None:
        self.served = 0
        self.epoch = uuid.uuid4().hex
        logger.info("RFID scan cursor reset (%s), epoch %s", reason, self.epoch)

    def read_new(
        self, since: Optional[int] = None, epoch: Optional[str] = None
    ) -> Tuple[str, List[Dict[str, Any]]]:
        """Current epoch plus the lines after ``since``.

        The last served line is used instead when ``since`` is missing, comes with
        an old epoch or points past the end of the file.
        """
        with self._lock:
            signature, lines = self._read()
            if self._replaced(signature, len(lines)):
                self._reset("scan file rewritten")
            self._signature = signature

            stale = since is None or (epoch is not None and epoch != self.epoch) or int(since) > len(lines)
            start = self.served if stale else max(0, int(since))
            now = to_iso(self._clock())
            scans = [
                {"id": number, "rfid": tag, "timestamp": now}
                for number, tag in enumerate(lines, start=1)
                if number > start
            ]
            if scans:
                self.served = max(self.served, scans[-1]["id"])
                logger.info("Found %d new RFID scans", len(scans))
            return self.epoch, scans

    def clear(self) -> None:
        with self._lock:
            self._reset("cleared")

    def use_file(self, scan_file: str | Path) -> None:
        with self._lock:
            self.scan_file = Path(scan_file)
            self._signature = None
            self._reset("scan file switched")
        self.ensure_file()
        logger.info("Monitoring RFID scan file: %s", self.scan_file)


def create_app(reader: FileScanReader) -> Flask:
    app = Flask(__name__)

    @app.route("/api/rfid/scans", methods=["GET"])
    def scans():
        since = request.args.get("since", type=int)
        try:
            epoch, scans = reader.read_new(since, request.args.get("epoch") or None)
            return jsonify({"success": True, "epoch": epoch, "scans": scans})
        except OSError as e:
            logger.error("Error reading scan file %s: %s", reader.scan_file, e)
            return jsonify({"success": False, "error": str(e)}), 500

    @app.route("/api/rfid/clear", methods=["POST"])
    def clear():
        reader.clear()
        return jsonify({"success": True, "message": "Processed scans cleared"})

    @app.route("/api/rfid/config", methods=["POST"])
    def configure():
        data = request.get_json(silent=True) or {}
        scan_file = data.get("scan_file") or data.get("scanFile")
        if not scan_file:
            return jsonify({"success": False, "error": "Scan file path required"}), 400
        try:
            reader.use_file(scan_file)
        except OSError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        return jsonify({"success": True, "message": "Scan file updated"})

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify(
            {
                "success": True,
                "status": "running",
                "scan_file": str(reader.scan_file),
                "processed_scans": reader.served,
                "epoch": reader.epoch,
            }
        )

    return app
