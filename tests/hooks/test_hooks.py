from dataclasses import dataclass

import pytest

from unitwork.backends import InMemoryBackend
from unitwork.core import EntityMapping
from unitwork.hooks import HookDispatcher, hooks
from unitwork.persistence import UnitOfWork


@dataclass
class Sample:
    id: int
    name: str


@dataclass
class Other:
    id: int


@pytest.fixture(autouse=True)
def clear_hooks():
    hooks.clear()
    yield
    hooks.clear()


def test_unknown_event_rejected():
    dispatcher = HookDispatcher()
    with pytest.raises(ValueError):
        dispatcher.register("before_save", lambda change, **ctx: None)


def test_session_event_cannot_be_bound_to_type():
    dispatcher = HookDispatcher()
    with pytest.raises(ValueError):
        dispatcher.register("after_commit", lambda change, **ctx: None, entity_type=Sample)


def test_default_dispatcher_used_by_sessions():
    events = []
    hooks.register("after_insert", lambda change, **ctx: events.append(str(change)))
    hooks.register("after_insert", lambda change, **ctx: events.append("sample-only"), entity_type=Sample)

    uow = UnitOfWork(InMemoryBackend(), [EntityMapping(Sample), EntityMapping(Other)])
    uow.sample.add(Sample(1, "Alice"))
    uow.other.add(Other(1))
    uow.commit()

    assert events == ["Sample:1:new", "sample-only", "Other:1:new"]


def test_after_commit_hook_errors_surface_after_commit():
    dispatcher = HookDispatcher()

    def broken(change, **ctx):
        raise RuntimeError("notification failed")

    dispatcher.register("after_commit", broken)
    backend = InMemoryBackend()
    uow = UnitOfWork(backend, [EntityMapping(Sample)], hooks=dispatcher)
    uow.sample.add(Sample(1, "Alice"))
    with pytest.raises(RuntimeError):
        uow.commit()
    assert uow.state.value == "committed"
    assert 1 in backend.rows("sample")


def test_clear_removes_every_handler():
    dispatcher = HookDispatcher()
    calls = []
    dispatcher.register("after_rollback", lambda change, **ctx: calls.append(1))
    dispatcher.register("after_delete", lambda change, **ctx: calls.append(2), entity_type=Sample)
    dispatcher.clear()
    dispatcher.fire("after_rollback", None)
    assert calls == []
