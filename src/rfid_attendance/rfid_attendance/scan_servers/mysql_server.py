"""Helper server reading badge reads from a MySQL ``rfid_scans`` table."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union

import mysql.connector
from flask import Flask, jsonify, request

from ..common.datetime_utils import now_local, to_iso
from ..core.exceptions import StoreError
from ..database.connection import ScanDatabase

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS rfid_scans (
    id INT AUTO_INCREMENT PRIMARY KEY,
    rfid_tag VARCHAR(64) NOT NULL,
    scanned_at DATETIME NOT NULL,
    student_id VARCHAR(64) NULL,
    INDEX idx_rfid_scans_scanned_at (scanned_at)
)
"""


class MySQLScanRepository:
    def __init__(self, conn: ScanDatabase):
        self._conn = conn

    def _run(self, action: str, sql: str, params: tuple = (), *, fetch: bool = True):
        try:
            with self._conn.cursor() as cur:
                cur.execute(sql, params)
                if fetch:
                    return cur.fetchall()
                return cur.lastrowid
        except mysql.connector.Error as e:
            raise StoreError(f"{action} failed: {e.msg}", code=str(e.errno) if e.errno else None) from e

    def ensure_schema(self) -> None:
        self._run("create rfid_scans", SCHEMA, fetch=False)

    def test(self) -> None:
        self._run("connection test", "SELECT 1")

    def latest_id(self) -> int:
        rows = self._run("latest scan id", "SELECT MAX(id) AS max_id FROM rfid_scans")
        return int(rows[0]["max_id"] or 0) if rows else 0

    def insert(self, tag: str, *, scanned_at: datetime, student_id: Optional[Union[int, str]] = None) -> int:
        scan_id = self._run(
            "insert scan",
            "INSERT INTO rfid_scans (rfid_tag, scanned_at, student_id) VALUES (%s, %s, %s)",
            (tag, scanned_at, student_id),
            fetch=False,
        )
        logger.info("RFID scan inserted: %s, id %s", tag, scan_id)
        return int(scan_id)

    def fetch_after(self, after_id: int) -> List[Dict[str, Any]]:
        return self._run(
            "fetch scans",
            "SELECT id, rfid_tag, scanned_at, student_id FROM rfid_scans WHERE id > %s ORDER BY id ASC",
            (int(after_id),),
        )


class ScanFeed:
    """Server-side cursor over ``rfid_scans``; starts at the newest row so old reads are not replayed.

    Moving the cursor by hand starts a new ``epoch``. A client ``since`` sent with
    an older epoch is ignored in favour of the server cursor.
    """

    def __init__(self, scans: MySQLScanRepository, *, clock=now_local):
        self._scans = scans
        self._clock = clock
        self._lock = threading.Lock()
        self.last_scan_id = 0
        self.epoch = uuid.uuid4().hex

    def start_at_latest(self) -> None:
        try:
            latest = self._scans.latest_id()
        except StoreError as e:
            logger.error("Error getting latest scan id: %s", e)
            latest = 0
        with self._lock:
            self.last_scan_id = latest
            self.epoch = uuid.uuid4().hex
        logger.info("Starting monitoring from scan id %s", latest)

    def skip_to(self, scan_id: int) -> None:
        with self._lock:
            self.last_scan_id = scan_id
            self.epoch = uuid.uuid4().hex

    def read_new(
        self, since: Optional[int] = None, epoch: Optional[str] = None
    ) -> Tuple[str, List[Dict[str, Any]]]:
        with self._lock:
            current = self.epoch
            stale = since is None or (epoch is not None and epoch != current)
            start = self.last_scan_id if stale else int(since)
        rows = self._scans.fetch_after(start)
        scans = [
            {
                "id": int(row["id"]),
                "rfid": row.get("rfid_tag"),
                "timestamp": to_iso(row.get("scanned_at") or self._clock()),
                "student_id": row.get("student_id"),
            }
            for row in rows
        ]
        if scans:
            with self._lock:
                self.last_scan_id = max(self.last_scan_id, scans[-1]["id"])
            logger.info("Found %d new RFID scans", len(scans))
        return current, scans


def create_app(
    conn: ScanDatabase, *, scans: Optional[MySQLScanRepository] = None, clock=now_local
) -> Flask:
    app = Flask(__name__)
    scans = scans or MySQLScanRepository(conn)
    feed = ScanFeed(scans, clock=clock)
    feed.start_at_latest()

    def error(e: Exception, status: int = 500):
        return jsonify({"success": False, "error": str(e)}), status

    @app.route("/api/rfid/scans", methods=["GET"])
    def list_scans():
        try:
            epoch, scans = feed.read_new(request.args.get("since", type=int), request.args.get("epoch") or None)
            return jsonify({"success": True, "epoch": epoch, "scans": scans})
        except StoreError as e:
            logger.error("Error fetching scans: %s", e)
            return error(e)

    @app.route("/api/rfid/clear", methods=["POST"])
    def clear():
        try:
            latest = scans.latest_id()
        except StoreError as e:
            return error(e)
        feed.skip_to(latest)
        return jsonify({"success": True, "message": "Processed scans cleared"})

    @app.route("/api/rfid/config", methods=["POST"])
    def configure():
        data = request.get_json(silent=True) or {}
        conn.reconfigure(conn.config.updated(**data))
        feed.start_at_latest()
        return jsonify({"success": True, "message": "Database config updated"})

    @app.route("/api/rfid/test", methods=["GET"])
    def test_connection():
        try:
            scans.test()
        except StoreError as e:
            return error(e)
        return jsonify({"success": True, "message": "Database connection successful"})

    @app.route("/api/rfid/insert-scan", methods=["POST"])
    def insert_scan():
        data = request.get_json(silent=True) or {}
        tag = str(data.get("rfid_tag") or "").strip()
        if not tag:
            return jsonify({"success": False, "error": "rfid_tag is required"}), 400
        try:
            scan_id = scans.insert(tag, scanned_at=clock(), student_id=data.get("student_id") or None)
        except StoreError as e:
            logger.error("Error inserting RFID scan: %s", e)
            return error(e)
        return jsonify({"success": True, "message": "RFID scan inserted successfully", "scan_id": scan_id})

    @app.route("/api/health", methods=["GET"])
    def health():
        try:
            latest = scans.latest_id()
        except StoreError as e:
            return jsonify({"success": False, "status": "error", "error": str(e)}), 500
        return jsonify(
            {
                "success": True,
                "status": "running",
                "database": conn.database,
                "latest_scan_id": latest,
                "pending_scans": max(0, latest - feed.last_scan_id),
                "epoch": feed.epoch,
            }
        )

    return app
