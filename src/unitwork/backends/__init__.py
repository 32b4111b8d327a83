"""
Persistence backend contract and reference implementations.
"""

from __future__ import annotations

from typing import Any

from ..errors import BackendConfigurationError
from .base import BackendConfig, EntityReader, PersistenceBackend, SSLConfig, TransactionHandle
from .memory import InMemoryBackend
from .mysql import MySQLBackend
from .postgres import PostgresBackend
from .sql import SQLBackend, StatementCompiler
from .sqlite import SQLiteBackend

_BACKENDS = {
    "memory": InMemoryBackend,
    "sqlite": SQLiteBackend,
    "postgres": PostgresBackend,
    "postgresql": PostgresBackend,
    "mysql": MySQLBackend,
}


def create_backend(target: BackendConfig | str, **kwargs: Any) -> PersistenceBackend:
    """
    Build a backend from a DSN or config, picking the implementation by scheme.

    ``memory://`` yields an :class:`InMemoryBackend`.
    """

    config = target if isinstance(target, BackendConfig) else BackendConfig.from_dsn(target)
    backend_class = _BACKENDS.get(config.scheme)
    if backend_class is None:
        raise BackendConfigurationError(
            f"No backend registered for scheme '{config.scheme}' ({config.redacted_dsn()})."
        )
    if backend_class is InMemoryBackend:
        return InMemoryBackend()
    return backend_class(config, **kwargs)


__all__ = [
    "BackendConfig",
    "EntityReader",
    "InMemoryBackend",
    "MySQLBackend",
    "PersistenceBackend",
    "PostgresBackend",
    "SQLBackend",
    "SQLiteBackend",
    "SSLConfig",
    "StatementCompiler",
    "TransactionHandle",
    "create_backend",
]
