"""
SQLite backend built on the Python stdlib sqlite3 module.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from ..dialects.sqlite import SQLiteDialect
from .base import BackendConfig
from .sql import SQLBackend


class SQLiteBackend(SQLBackend):
    """
    Backend for SQLite files or in-memory databases.

    The connection runs in autocommit mode so transactions are opened
    explicitly with ``BEGIN`` (``BEGIN IMMEDIATE`` and friends when the
    config names an isolation level).
    """

    name = "sqlite"

    def __init__(self, config: BackendConfig | str = "sqlite:///:memory:", **kwargs: Any) -> None:
        super().__init__(config, dialect=SQLiteDialect(), **kwargs)

    def _connect(self) -> sqlite3.Connection:
        path = self._normalize_path(self.config.url)
        timeout = self.config.timeout if self.config.timeout is not None else 5.0
        self.logger.info("Opening SQLite database %s", self.config.descriptive_label())
        connection = sqlite3.connect(
            path,
            isolation_level=None,
            timeout=timeout,
            detect_types=sqlite3.PARSE_DECLTYPES,
            check_same_thread=False,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def _begin(self, connection: sqlite3.Connection) -> None:
        statement = self.dialect.begin_statement
        if self.config.isolation_level:
            statement = f"{statement} {self.config.isolation_level.upper()}"
        connection.execute(statement)

    @staticmethod
    def _normalize_path(url: str) -> str:
        if url in ("sqlite://", "sqlite:///:memory:"):
            return ":memory:"
        prefix = "sqlite:///"
        if url.startswith(prefix):
            return url[len(prefix) :].split("?", 1)[0]
        return url
