"""
SQLite dialect implementation.
"""

from __future__ import annotations

from typing import Final


class SQLiteDialect:
    """
    SQLite dialect using qmark param style.
    """

    name: Final[str] = "sqlite"
    param_style: Final[str] = "qmark"
    begin_statement: Final[str] = "BEGIN"

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace('"', '""')
        return f'"{escaped}"'

    def format_table(self, table_name: str) -> str:
        return self.quote_identifier(table_name)

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "?"