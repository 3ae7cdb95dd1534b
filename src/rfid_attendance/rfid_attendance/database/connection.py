from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Any, Iterator, Mapping

import mysql.connector


@dataclass(frozen=True)
class DBConfig:
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str = "rfid_system"
    connect_timeout: int = 10

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "DBConfig":
        return cls().updated(**values)

    def updated(self, **changes: Any) -> "DBConfig":
        """Copy with the given non-empty fields replaced; unknown keys are ignored.

        An empty password is a real value, so ``password`` only needs to be present.
        """
        known = {}
        for name in ("host", "user", "database"):
            if changes.get(name):
                known[name] = str(changes[name])
        for name in ("port", "connect_timeout"):
            if changes.get(name):
                known[name] = int(changes[name])
        if changes.get("password") is not None:
            known["password"] = str(changes["password"])
        return replace(self, **known)

    def describe(self) -> str:
        return f"{self.user}@{self.host}:{self.port}/{self.database}"


class ScanDatabase:
    """MySQL access for the scan-table helper server.

    Opens one connection per operation: the helper polls a single table about
    once a second and its settings can change at runtime through ``reconfigure``.
    """

    def __init__(self, config: DBConfig):
        self._config = config

    @property
    def config(self) -> DBConfig:
        return self._config

    @property
    def database(self) -> str:
        return self._config.database

    def reconfigure(self, config: DBConfig) -> None:
        self._config = config

    @contextmanager
    def cursor(self) -> Iterator[Any]:
        """Dictionary cursor on a fresh connection; commits on success, rolls back on error."""
        cfg = self._config
        conn = mysql.connector.connect(
            host=cfg.host,
            port=cfg.port,
            user=cfg.user,
            password=cfg.password,
            database=cfg.database,
            connection_timeout=cfg.connect_timeout,
        )
        try:
            cur = conn.cursor(dictionary=True)
            try:
                yield cur
                conn.commit()
            finally:
                cur.close()
        except mysql.connector.Error:
            conn.rollback()
            raise
        finally:
            conn.close()
