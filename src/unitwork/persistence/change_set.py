"""
Immutable change sets handed to persistence backends.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Hashable, Iterator, Mapping, Optional, Sequence, overload

from ..core import EntityKey, LifecycleState


@dataclass(frozen=True)
class Change:
    """
    One pending mutation: what to write, where, and the state it replaces.

    ``values`` is a private copy of the entity's persisted fields (the
    snapshot for removals); ``original`` is the last known-persisted state and
    is ``None`` for inserts.
    """

    entity_type: type
    name: str
    key: Hashable
    key_fields: Optional[tuple[str, ...]]
    state: LifecycleState
    values: Mapping[str, Any]
    original: Optional[Mapping[str, Any]] = None

    @property
    def identity(self) -> EntityKey:
        return EntityKey(self.entity_type, self.key)

    @property
    def is_insert(self) -> bool:
        return self.state is LifecycleState.NEW

    @property
    def is_update(self) -> bool:
        return self.state is LifecycleState.MODIFIED

    @property
    def is_delete(self) -> bool:
        return self.state is LifecycleState.REMOVED

    def changed_fields(self) -> dict[str, Any]:
        """
        Fields whose value differs from ``original``; every field for inserts.
        """

        if self.original is None:
            return dict(self.values)
        return {
            name: value
            for name, value in self.values.items()
            if name not in self.original or self.original[name] != value
        }

    def __str__(self) -> str:
        return f"{self.identity}:{self.state.value}"


class ChangeSet(Sequence[Change]):
    """
    Ordered, read-only batch of changes submitted for atomic apply.
    """

    __slots__ = ("_changes",)

    def __init__(self, changes: Sequence[Change] = ()) -> None:
        self._changes: tuple[Change, ...] = tuple(changes)

    @overload
    def __getitem__(self, index: int) -> Change: ...

    @overload
    def __getitem__(self, index: slice) -> "ChangeSet": ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return ChangeSet(self._changes[index])
        return self._changes[index]

    def __len__(self) -> int:
        return len(self._changes)

    def __iter__(self) -> Iterator[Change]:
        return iter(self._changes)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ChangeSet):
            return self._changes == other._changes
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(str(change) for change in self._changes))

    def __repr__(self) -> str:
        return f"ChangeSet([{', '.join(str(change) for change in self._changes)}])"

    @property
    def is_empty(self) -> bool:
        return not self._changes

    @property
    def inserts(self) -> tuple[Change, ...]:
        return tuple(change for change in self._changes if change.is_insert)

    @property
    def updates(self) -> tuple[Change, ...]:
        return tuple(change for change in self._changes if change.is_update)

    @property
    def deletes(self) -> tuple[Change, ...]:
        return tuple(change for change in self._changes if change.is_delete)

    def describe(self) -> list[str]:
        return [str(change) for change in self._changes]
