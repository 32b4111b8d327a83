import pytest

from unitwork.core import LifecycleState
from unitwork.persistence import Change, ChangeSet
from unitwork.utils import CommitStats, resolve_slow_apply_ms, storage_name
from unitwork.utils.performance import SLOW_APPLY_ENV


class LedgerEntry:
    pass


def change(state, key):
    return Change(LedgerEntry, "ledger_entry", key, ("id",), state, {"id": key})


def test_resolve_slow_apply_ms(monkeypatch):
    monkeypatch.delenv(SLOW_APPLY_ENV, raising=False)
    assert resolve_slow_apply_ms() == 100
    monkeypatch.setenv(SLOW_APPLY_ENV, "250")
    assert resolve_slow_apply_ms() == 250
    assert resolve_slow_apply_ms(override=5) == 5


@pytest.mark.parametrize("raw", ["fast", "-1"])
def test_resolve_slow_apply_ms_rejects_bad_values(monkeypatch, raw):
    monkeypatch.setenv(SLOW_APPLY_ENV, raw)
    with pytest.raises(ValueError):
        resolve_slow_apply_ms()


def test_commit_stats_counts():
    stats = CommitStats()
    assert stats.average_ms == 0.0
    stats.record_success(
        ChangeSet([change(LifecycleState.NEW, 1), change(LifecycleState.REMOVED, 2)]), 10.0
    )
    stats.record_failure(RuntimeError("boom"), 30.0)
    assert stats.summary() == {
        "commits": 1,
        "failures": 1,
        "inserts": 1,
        "updates": 0,
        "deletes": 1,
        "average_ms": 20.0,
        "last_ms": 30.0,
    }
    assert stats.errors == ["RuntimeError: boom"]


def test_storage_name():
    assert storage_name(LedgerEntry) == "ledger_entry"
