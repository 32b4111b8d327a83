"""
Repository adapters routing entity operations through the change tracker.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, Hashable, List, Optional, TypeVar

from ..backends.base import EntityReader
from ..core import EntityHandle, EntityMapping, LifecycleState
from ..errors import BackendConfigurationError

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork

E = TypeVar("E")


class Repository(Generic[E]):
    """
    Per-type collection bound to one unit of work.

    Every entity passing through ``add``/``update``/``remove``/``get`` is
    registered with the session's tracker before the call returns.
    """

    def __init__(self, session: "UnitOfWork", mapping: EntityMapping, reader: Optional[EntityReader] = None) -> None:
        self.session = session
        self.mapping = mapping
        self.reader = reader

    def __repr__(self) -> str:
        return f"Repository[{self.mapping.entity_type.__name__}]"

    @property
    def entity_type(self) -> type:
        return self.mapping.entity_type

    @property
    def tracker(self):
        return self.session.tracker

    def _handle(self, entity: E) -> EntityHandle:
        return self.mapping.handle(entity)

    # ------------------------------------------------------------------ #
    # Write path
    # ------------------------------------------------------------------ #
    def add(self, entity: E) -> E:
        with self.session.guard():
            self.tracker.register(self._handle(entity), LifecycleState.NEW)
        return entity

    def update(self, entity: E) -> E:
        with self.session.guard():
            handle = self._handle(entity)
            entry = self.tracker.get(handle.key)
            if entry is None:
                stored = self.reader.load(self.mapping, handle.key.key) if self.reader is not None else None
                self.tracker.register(handle, LifecycleState.UNCHANGED, initial_state=stored)
            elif entry.entity is not entity:
                self.tracker.replace_entity(handle.key, entity)
            self.tracker.mark_modified(handle.key)
        return entity

    def remove(self, entity: E) -> None:
        with self.session.guard():
            handle = self._handle(entity)
            if handle.key not in self.tracker:
                self.tracker.register(handle, LifecycleState.UNCHANGED)
            self.tracker.mark_removed(handle.key)

    # ------------------------------------------------------------------ #
    # Read path
    # ------------------------------------------------------------------ #
    def get(self, key: Hashable) -> Optional[E]:
        """
        Return the entity for ``key``, tracking it as unchanged on first read.

        Entities pending removal in this session read as missing.
        """

        with self.session.guard():
            identity = self.mapping.identity(key)
            entry = self.tracker.get(identity)
            if entry is not None:
                if entry.state is LifecycleState.REMOVED:
                    return None
                return entry.entity
            if self.reader is None:
                raise BackendConfigurationError(
                    f"{self!r} has no reader; the backend does not support loading entities."
                )
            state = self.reader.load(self.mapping, key)
            if state is None:
                return None
            entity = self.mapping.build(state)
            self.tracker.register(EntityHandle(identity, entity), LifecycleState.UNCHANGED)
            return entity

    def tracked(self) -> List[E]:
        """
        Entities of this type tracked by the session and not pending removal.
        """

        return [
            entry.entity
            for entry in self.tracker.entries()
            if entry.handle.entity_type is self.entity_type and entry.state is not LifecycleState.REMOVED
        ]

    def __contains__(self, entity: object) -> bool:
        if not isinstance(entity, self.entity_type):
            return False
        key = self._handle(entity).key
        return key in self.tracker and self.tracker.state_of(key) is not LifecycleState.REMOVED
