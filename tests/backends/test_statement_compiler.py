from dataclasses import dataclass

import pytest

from unitwork.backends import StatementCompiler
from unitwork.core import EntityMapping, LifecycleState
from unitwork.dialects import MySQLDialect, PostgresDialect, SQLiteDialect
from unitwork.errors import BackendError
from unitwork.persistence import Change


@dataclass
class Line:
    order_id: int
    line_no: int
    sku: str
    qty: int


def line_change(state, values, original=None, key_fields=("order_id", "line_no")):
    return Change(
        entity_type=Line,
        name="order_line",
        key=(values["order_id"], values["line_no"]),
        key_fields=key_fields,
        state=state,
        values=values,
        original=original,
    )


VALUES = {"order_id": 1, "line_no": 2, "sku": "A-1", "qty": 3}


def test_insert_lists_every_column():
    sql, params, names = StatementCompiler(PostgresDialect()).compile(line_change(LifecycleState.NEW, VALUES))
    assert sql == 'INSERT INTO "order_line" ("order_id", "line_no", "sku", "qty") VALUES (%s, %s, %s, %s)'
    assert params == [1, 2, "A-1", 3]
    assert names == ["order_id", "line_no", "sku", "qty"]


def test_update_sets_changed_columns_with_composite_key():
    change = line_change(LifecycleState.MODIFIED, {**VALUES, "qty": 5}, original=VALUES)
    sql, params, names = StatementCompiler(SQLiteDialect()).compile(change)
    assert sql == 'UPDATE "order_line" SET "qty" = ? WHERE "order_id" = ? AND "line_no" = ?'
    assert params == [5, 1, 2]
    assert names == ["qty", "order_id", "line_no"]


def test_update_without_diff_rewrites_non_key_columns():
    change = line_change(LifecycleState.MODIFIED, VALUES, original=VALUES)
    sql, params, _ = StatementCompiler(SQLiteDialect()).compile(change)
    assert sql == 'UPDATE "order_line" SET "sku" = ?, "qty" = ? WHERE "order_id" = ? AND "line_no" = ?'
    assert params == ["A-1", 3, 1, 2]


def test_update_with_only_key_columns_is_skipped():
    values = {"order_id": 1, "line_no": 2}
    change = line_change(LifecycleState.MODIFIED, values, original=values)
    assert StatementCompiler(SQLiteDialect()).compile(change) is None


def test_delete_uses_key_only():
    sql, params, _ = StatementCompiler(MySQLDialect()).compile(line_change(LifecycleState.REMOVED, VALUES))
    assert sql == "DELETE FROM `order_line` WHERE `order_id` = %s AND `line_no` = %s"
    assert params == [1, 2]


def test_select_by_mapping_key():
    mapping = EntityMapping(Line, key=("order_id", "line_no"), name="sales.order_line")
    sql, params, _ = StatementCompiler(PostgresDialect()).select(mapping, (1, 2))
    assert sql == 'SELECT * FROM "sales"."order_line" WHERE "order_id" = %s AND "line_no" = %s'
    assert params == [1, 2]


def test_changes_without_key_fields_are_rejected():
    change = line_change(LifecycleState.REMOVED, VALUES, key_fields=None)
    with pytest.raises(BackendError) as excinfo:
        StatementCompiler(SQLiteDialect()).compile(change)
    assert excinfo.value.failed_changes == (change,)
