"""
PostgreSQL backend using the psycopg driver.
"""

from __future__ import annotations

from typing import Any

from ..dialects.postgres import PostgresDialect
from ..errors import BackendConfigurationError
from .base import BackendConfig
from .sql import SQLBackend


def _load_driver():
    try:
        import psycopg

        return psycopg
    except ImportError:
        return None


class PostgresBackend(SQLBackend):
    """
    Backend wrapping a psycopg connection.

    Without autocommit psycopg opens transactions implicitly, so ``BEGIN`` is
    only sent when the config asks for an autocommit connection.
    """

    name = "postgresql"

    def __init__(self, config: BackendConfig | str, **kwargs: Any) -> None:
        super().__init__(config, dialect=PostgresDialect(), **kwargs)

    def _connect(self) -> Any:
        driver = _load_driver()
        if driver is None:
            raise BackendConfigurationError("psycopg is required to use PostgresBackend.")

        options = dict(self.config.options or {})
        if self.config.ssl:
            for key, value in self.config.ssl.postgres_options().items():
                options.setdefault(key, value)
        if self.config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(self.config.timeout)

        self.logger.info(
            "Connecting to PostgreSQL %s (autocommit=%s)",
            self.config.descriptive_label(),
            self.config.autocommit,
        )
        connection = driver.connect(self._conninfo(), **options)
        connection.autocommit = bool(self.config.autocommit)
        if self.config.isolation_level:
            setattr(connection, "isolation_level", self.config.isolation_level)
        return connection

    def _begin(self, connection: Any) -> None:
        if connection.autocommit:
            connection.cursor().execute(self.dialect.begin_statement)

    def _conninfo(self) -> str:
        url = self.config.url
        scheme, _, rest = url.partition("://")
        # psycopg only understands the bare scheme, not "postgresql+psycopg".
        return f"{scheme.split('+', 1)[0]}://{rest.split('?', 1)[0]}"
