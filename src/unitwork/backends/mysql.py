"""
MySQL backend using PyMySQL (or mysqlclient when PyMySQL is absent).
"""

from __future__ import annotations

from typing import Any

from ..dialects.mysql import MySQLDialect
from ..errors import BackendConfigurationError
from .base import BackendConfig
from .sql import SQLBackend


def _load_driver():
    try:
        import pymysql

        return pymysql
    except ImportError:
        try:
            import MySQLdb

            return MySQLdb
        except ImportError:
            return None


def _found_rows_flag(driver: Any) -> int | None:
    constants = getattr(driver, "constants", None)
    client = getattr(constants, "CLIENT", None)
    return getattr(client, "FOUND_ROWS", None)


class MySQLBackend(SQLBackend):
    """
    Backend wrapping a MySQL DB-API connection.

    The connection is opened with ``FOUND_ROWS`` so an UPDATE that matches a
    row without changing it still reports one affected row.
    """

    name = "mysql"

    def __init__(self, config: BackendConfig | str, **kwargs: Any) -> None:
        super().__init__(config, dialect=MySQLDialect(), **kwargs)

    def _connect(self) -> Any:
        driver = _load_driver()
        if driver is None:
            raise BackendConfigurationError("PyMySQL or mysqlclient is required to use MySQLBackend.")
        if not self.config.dsn:
            raise BackendConfigurationError("BackendConfig must be built from a DSN for MySQL connections.")

        options = dict(self.config.options or {})
        if self.config.ssl:
            for key, value in self.config.ssl.mysql_options().items():
                options.setdefault(key, value)
        if self.config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(self.config.timeout)
        found_rows = _found_rows_flag(driver)
        if found_rows is not None:
            options["client_flag"] = options.get("client_flag", 0) | found_rows

        self.logger.info(
            "Connecting to MySQL %s (autocommit=%s)",
            self.config.descriptive_label(),
            self.config.autocommit,
        )
        dsn = self.config.dsn
        connect_kwargs = {
            "host": dsn.host or "localhost",
            "user": dsn.username,
            "password": dsn.password,
            "database": dsn.database,
            **options,
        }
        if dsn.port:
            connect_kwargs["port"] = dsn.port
        connection = driver.connect(**connect_kwargs)
        if hasattr(connection, "autocommit"):
            connection.autocommit(self.config.autocommit)
        return connection

    def _is_closed(self, connection: Any) -> bool:
        is_open = getattr(connection, "open", True)
        return not is_open
