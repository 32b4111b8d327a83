"""
DB-API backend rendering change sets to INSERT/UPDATE/DELETE statements.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Hashable, List, Optional, Sequence, Tuple

from ..dialects.base import Dialect
from ..errors import BackendConfigurationError, BackendError, BackendUnavailableError
from ..security.redaction import redact_params
from ..utils import get_logger, resolve_slow_apply_ms, time_call
from .base import BackendConfig, TransactionHandle

if TYPE_CHECKING:
    from ..core import EntityMapping
    from ..persistence.change_set import Change, ChangeSet

Statement = Tuple[str, List[Any], List[str]]


class StatementCompiler:
    """
    Renders one :class:`Change` into a parameterized statement for a dialect.

    Statements come back as ``(sql, params, param_names)``; the names let
    callers redact parameters before logging.
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect

    def compile(self, change: "Change") -> Optional[Statement]:
        if change.is_insert:
            return self.insert(change)
        if change.is_update:
            return self.update(change)
        if change.is_delete:
            return self.delete(change)
        raise BackendError(f"Unsupported change state {change.state.value}.", failed_changes=[change])

    def insert(self, change: "Change") -> Statement:
        names = list(change.values)
        columns = ", ".join(self.dialect.quote_identifier(name) for name in names)
        placeholders = ", ".join(self.dialect.parameter_placeholder(i + 1) for i in range(len(names)))
        sql = f"INSERT INTO {self.dialect.format_table(change.name)} ({columns}) VALUES ({placeholders})"
        return sql, [change.values[name] for name in names], names

    def update(self, change: "Change") -> Optional[Statement]:
        key_fields = self._key_fields(change)
        changed = {
            name: value for name, value in change.changed_fields().items() if name not in key_fields
        }
        if not changed:
            # Explicit update without a diff: every non-key column is written.
            changed = {name: value for name, value in change.values.items() if name not in key_fields}
        if not changed:
            return None
        names = list(changed)
        assignments = ", ".join(
            f"{self.dialect.quote_identifier(name)} = {self.dialect.parameter_placeholder(i + 1)}"
            for i, name in enumerate(names)
        )
        where, key_params = self._where(change, key_fields, offset=len(names))
        sql = f"UPDATE {self.dialect.format_table(change.name)} SET {assignments} WHERE {where}"
        return sql, [changed[name] for name in names] + key_params, names + list(key_fields)

    def delete(self, change: "Change") -> Statement:
        key_fields = self._key_fields(change)
        where, key_params = self._where(change, key_fields)
        sql = f"DELETE FROM {self.dialect.format_table(change.name)} WHERE {where}"
        return sql, key_params, list(key_fields)

    def select(self, mapping: "EntityMapping", key: Hashable) -> Statement:
        key_values = mapping.key_values(key)
        names = list(key_values)
        where = " AND ".join(
            f"{self.dialect.quote_identifier(name)} = {self.dialect.parameter_placeholder(i + 1)}"
            for i, name in enumerate(names)
        )
        sql = f"SELECT * FROM {self.dialect.format_table(mapping.name)} WHERE {where}"
        return sql, [key_values[name] for name in names], names

    def _key_fields(self, change: "Change") -> tuple[str, ...]:
        if not change.key_fields:
            raise BackendError(
                f"{change.identity} has no key fields; SQL backends need named key attributes.",
                failed_changes=[change],
            )
        return change.key_fields

    def _where(self, change: "Change", key_fields: Sequence[str], offset: int = 0) -> Tuple[str, List[Any]]:
        key_params = [change.key] if len(key_fields) == 1 else list(change.key)
        where = " AND ".join(
            f"{self.dialect.quote_identifier(name)} = {self.dialect.parameter_placeholder(offset + i + 1)}"
            for i, name in enumerate(key_fields)
        )
        return where, key_params


class SQLBackend:
    """
    Base for DB-API backends: one connection, one transaction at a time.

    Subclasses supply :meth:`_connect` (and may override :meth:`_begin`).
    Driver exceptions are wrapped in unitwork errors with the original chained.
    """

    name = "sql"

    def __init__(
        self,
        config: BackendConfig | str,
        *,
        dialect: Dialect,
        slow_statement_ms: int | None = None,
    ) -> None:
        self.config = config if isinstance(config, BackendConfig) else BackendConfig.from_dsn(config)
        self.dialect = dialect
        self.compiler = StatementCompiler(dialect)
        self.slow_statement_ms = resolve_slow_apply_ms(default=100, override=slow_statement_ms)
        self.logger = get_logger(f"backends.{self.name}")
        self._connection: Any = None
        self._active: Optional[str] = None

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def _connect(self) -> Any:
        raise NotImplementedError

    def _is_closed(self, connection: Any) -> bool:
        return bool(getattr(connection, "closed", False))

    def connection(self) -> Any:
        if self._connection is not None and self._is_closed(self._connection):
            if self._active is not None:
                raise BackendUnavailableError(f"{self.name} connection dropped inside a transaction.")
            self.logger.warning("%s connection closed; reconnecting.", self.name)
            self._connection = None
        if self._connection is None:
            try:
                self._connection = self._connect()
            except (BackendUnavailableError, BackendConfigurationError):
                raise
            except Exception as exc:
                raise BackendUnavailableError(
                    f"Failed to connect to {self.config.descriptive_label()}."
                ) from exc
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            try:
                self._connection.close()
            finally:
                self._connection = None
                self._active = None

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def _begin(self, connection: Any) -> None:
        connection.cursor().execute(self.dialect.begin_statement)

    def begin_transaction(self) -> TransactionHandle:
        if self._active is not None:
            raise BackendUnavailableError(f"{self.name} backend already has an open transaction.")
        connection = self.connection()
        try:
            self._begin(connection)
        except Exception as exc:
            raise BackendUnavailableError(f"Could not begin a {self.name} transaction.") from exc
        handle = TransactionHandle(self.name)
        self._active = handle.id
        self.logger.debug("Began transaction %s", handle.id)
        return handle

    def apply(self, transaction: TransactionHandle, change_set: "ChangeSet") -> None:
        self._ensure_active(transaction)
        for change in change_set:
            statement = self.compiler.compile(change)
            if statement is None:
                continue
            sql, params, names = statement
            try:
                cursor = self.execute(sql, params, names=names)
            except Exception as exc:
                raise BackendError(f"Failed to apply {change}: {exc}", failed_changes=[change]) from exc
            if not change.is_insert and getattr(cursor, "rowcount", -1) == 0:
                raise BackendError(f"{change.identity} does not exist.", failed_changes=[change])

    def commit_transaction(self, transaction: TransactionHandle) -> None:
        self._ensure_active(transaction)
        try:
            self.connection().commit()
        except Exception as exc:
            raise BackendError(f"Commit of transaction {transaction.id} failed.") from exc
        self._active = None

    def rollback_transaction(self, transaction: TransactionHandle) -> None:
        if self._active != transaction.id:
            return
        try:
            self._connection.rollback()
        except Exception as exc:
            raise BackendError(f"Rollback of transaction {transaction.id} failed.") from exc
        finally:
            self._active = None

    def _ensure_active(self, transaction: TransactionHandle) -> None:
        if self._active is None or self._active != transaction.id:
            raise BackendError(f"Transaction {transaction.id} is not active.")

    @property
    def in_transaction(self) -> bool:
        return self._active is not None

    # ------------------------------------------------------------------ #
    # Execution and reads
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Sequence[Any] | None = None, *, names: Sequence[str] | None = None) -> Any:
        cursor = self.connection().cursor()
        param_list = list(params or ())
        with time_call(
            f"{self.name}.execute",
            self.logger,
            threshold_ms=self.slow_statement_ms,
            sql=sql,
            params=redact_params(param_list, names),
        ):
            cursor.execute(sql, param_list)
        return cursor

    def load(self, mapping: "EntityMapping", key: Hashable) -> Optional[Dict[str, Any]]:
        sql, params, names = self.compiler.select(mapping, key)
        try:
            cursor = self.execute(sql, params, names=names)
            row = cursor.fetchone()
            columns = [column[0] for column in cursor.description or ()]
        except Exception as exc:
            raise BackendError(f"Failed to load {mapping.identity(key)}: {exc}") from exc
        finally:
            if self._active is None:
                self._end_read()
        if row is None:
            return None
        state = self._row_to_dict(row, columns)
        if mapping.field_names_declared:
            return {name: state[name] for name in mapping.field_names_declared if name in state}
        return state

    def _end_read(self) -> None:
        # Drivers without autocommit open an implicit transaction for reads.
        if self._connection is not None:
            self._connection.rollback()

    @staticmethod
    def _row_to_dict(row: Any, columns: Sequence[str]) -> Dict[str, Any]:
        if isinstance(row, dict):
            return dict(row)
        if hasattr(row, "keys"):
            return {name: row[name] for name in row.keys()}
        return dict(zip(columns, row))
