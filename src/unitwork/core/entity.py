"""
Entity identity primitives shared by the tracker and repositories.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Hashable


class LifecycleState(str, Enum):
    """
    Pending intent recorded for a tracked entity.
    """

    NEW = "new"
    UNCHANGED = "unchanged"
    MODIFIED = "modified"
    REMOVED = "removed"
    DETACHED = "detached"

    @property
    def is_pending(self) -> bool:
        return self in (LifecycleState.NEW, LifecycleState.MODIFIED, LifecycleState.REMOVED)


@dataclass(frozen=True)
class EntityKey:
    """
    Value identity of an entity: its type plus its key.
    """

    entity_type: type
    key: Hashable

    def __str__(self) -> str:
        return f"{self.entity_type.__name__}:{self.key!r}"


@dataclass(frozen=True, eq=False)
class EntityHandle:
    """
    Pairs an entity identity with the live object holding its current state.
    """

    key: EntityKey
    entity: Any

    @property
    def entity_type(self) -> type:
        return self.key.entity_type

    def with_entity(self, entity: Any) -> "EntityHandle":
        return EntityHandle(self.key, entity)
