"""
Change tracker classifying every registered entity and computing dirtiness.
"""

from __future__ import annotations

import copy
import dataclasses
import itertools
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..core import EntityHandle, EntityKey, LifecycleState, MappingRegistry
from ..errors import DuplicateHandleError, InvalidTransitionError, UntrackedEntityError
from ..security.redaction import redact_value
from ..utils import get_logger
from .change_set import Change, ChangeSet
from .identity_map import IdentityMap
from .ordering import DeletesLastPolicy, OrderingPolicy, apply_policy

_REGISTRABLE = (LifecycleState.NEW, LifecycleState.UNCHANGED)


@dataclass
class TrackedEntry:
    handle: EntityHandle
    state: LifecycleState
    snapshot: Dict[str, Any]
    order: int

    @property
    def key(self) -> EntityKey:
        return self.handle.key

    @property
    def entity(self) -> Any:
        return self.handle.entity


class ChangeTracker:
    """
    Records lifecycle intent per entity identity and detects in-place edits.

    Snapshots are private deep copies; they are replaced wholesale, never
    mutated, so checkpoints can share them safely.
    """

    def __init__(self, mappings: MappingRegistry) -> None:
        self.mappings = mappings
        self.identity_map = IdentityMap()
        self._sequence = itertools.count(1)
        self._checkpoint: Optional[Dict[EntityKey, TrackedEntry]] = None
        self.logger = get_logger("persistence.tracker")

    # ------------------------------------------------------------------ #
    # Registration and transitions
    # ------------------------------------------------------------------ #
    def register(
        self,
        handle: EntityHandle,
        intent: LifecycleState = LifecycleState.NEW,
        initial_state: Optional[Mapping[str, Any]] = None,
    ) -> TrackedEntry:
        if intent not in _REGISTRABLE:
            raise InvalidTransitionError(f"Cannot register {handle.key} as {intent.value}.")
        if handle.key in self.identity_map:
            raise DuplicateHandleError(f"{handle.key} is already tracked in this session.")
        mapping = self.mappings.get(handle.entity_type)
        if initial_state is None:
            snapshot = mapping.extract(handle.entity)
        else:
            snapshot = copy.deepcopy(dict(initial_state))
        entry = TrackedEntry(handle, intent, snapshot, next(self._sequence))
        self.identity_map.add(entry)
        self.logger.debug("Registered %s as %s", handle.key, intent.value)
        return entry

    def mark_modified(self, key: EntityKey) -> TrackedEntry:
        entry = self._require(key)
        if entry.state is LifecycleState.REMOVED:
            raise InvalidTransitionError(f"{key} was removed and cannot be modified.")
        if entry.state is LifecycleState.UNCHANGED:
            entry.state = LifecycleState.MODIFIED
        return entry

    def mark_removed(self, key: EntityKey) -> TrackedEntry:
        entry = self._require(key)
        if entry.state is LifecycleState.NEW:
            # Never persisted: removing it cancels the insert outright.
            self.identity_map.remove(key)
            entry.state = LifecycleState.DETACHED
            self.logger.debug("Detached %s before it was persisted", key)
            return entry
        entry.state = LifecycleState.REMOVED
        return entry

    def replace_entity(self, key: EntityKey, entity: Any) -> TrackedEntry:
        """
        Track ``entity`` as the current state of an already tracked identity.
        """

        entry = self._require(key)
        if entry.state is LifecycleState.REMOVED:
            raise InvalidTransitionError(f"{key} was removed and cannot be replaced.")
        entry.handle = entry.handle.with_entity(entity)
        return entry

    # ------------------------------------------------------------------ #
    # Dirty detection and change sets
    # ------------------------------------------------------------------ #
    def detect_dirty(self) -> List[EntityKey]:
        reclassified: List[EntityKey] = []
        for entry in self.identity_map.values():
            self._check_key(entry)
            if entry.state is LifecycleState.UNCHANGED and self._has_drifted(entry):
                entry.state = LifecycleState.MODIFIED
                reclassified.append(entry.key)
        if reclassified:
            self.logger.debug("Detected %s modified entities", len(reclassified))
        return reclassified

    def build_change_set(self, policy: Optional[OrderingPolicy] = None) -> ChangeSet:
        return self._change_set(self.identity_map.values(), policy)

    def preview_change_set(self, policy: Optional[OrderingPolicy] = None) -> ChangeSet:
        """
        Build the change set a commit would produce without reclassifying
        entries or touching a pending checkpoint.
        """

        entries = []
        for entry in self.identity_map.values():
            self._check_key(entry)
            if entry.state is LifecycleState.UNCHANGED and self._has_drifted(entry):
                entry = dataclasses.replace(entry, state=LifecycleState.MODIFIED)
            entries.append(entry)
        return self._change_set(entries, policy)

    def has_changes(self) -> bool:
        return any(
            entry.state.is_pending or self._has_drifted(entry) for entry in self.identity_map.values()
        )

    # ------------------------------------------------------------------ #
    # Baseline management
    # ------------------------------------------------------------------ #
    def checkpoint(self) -> None:
        self._checkpoint = {
            key: dataclasses.replace(entry) for key, entry in self.identity_map.copy().items()
        }

    def commit(self) -> None:
        for entry in self.identity_map.values():
            if entry.state is LifecycleState.REMOVED:
                self.identity_map.remove(entry.key)
                entry.state = LifecycleState.DETACHED
                continue
            mapping = self.mappings.get(entry.handle.entity_type)
            entry.snapshot = mapping.extract(entry.entity)
            entry.state = LifecycleState.UNCHANGED
        self._checkpoint = None

    def discard(self) -> None:
        """
        Restore the bookkeeping captured by the last :meth:`checkpoint`.
        """

        if self._checkpoint is None:
            self.logger.debug("Discard requested without a checkpoint; nothing to restore")
            return
        self.identity_map.replace(self._checkpoint)
        self._checkpoint = None

    def reset(self) -> None:
        """
        Abandon pending changes and revert tracked objects to their snapshots.
        """

        for entry in self.identity_map.values():
            if entry.state is LifecycleState.NEW:
                self.identity_map.remove(entry.key)
                entry.state = LifecycleState.DETACHED
                continue
            if self._has_drifted(entry):
                mapping = self.mappings.get(entry.handle.entity_type)
                self.logger.debug(
                    "Reverting %s to %s", entry.key, redact_value(entry.snapshot)
                )
                entry.handle = entry.handle.with_entity(mapping.restore(entry.entity, entry.snapshot))
            entry.state = LifecycleState.UNCHANGED
        self._checkpoint = None

    def clear(self) -> None:
        self.identity_map.clear()
        self._checkpoint = None

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    def get(self, key: EntityKey) -> Optional[TrackedEntry]:
        return self.identity_map.get(key)

    def state_of(self, key: EntityKey) -> LifecycleState:
        entry = self.identity_map.get(key)
        if entry is None:
            return LifecycleState.DETACHED
        return entry.state

    def entries(self) -> List[TrackedEntry]:
        return self.identity_map.values()

    def __contains__(self, key: object) -> bool:
        return key in self.identity_map

    def __len__(self) -> int:
        return len(self.identity_map)

    # ------------------------------------------------------------------ #
    def _require(self, key: EntityKey) -> TrackedEntry:
        entry = self.identity_map.get(key)
        if entry is None:
            raise UntrackedEntityError(f"{key} is not tracked in this session.")
        return entry

    def _has_drifted(self, entry: TrackedEntry) -> bool:
        mapping = self.mappings.get(entry.handle.entity_type)
        return mapping.extract(entry.entity) != entry.snapshot

    def _check_key(self, entry: TrackedEntry) -> None:
        # Identity is fixed at registration.
        mapping = self.mappings.get(entry.handle.entity_type)
        current = mapping.key_of(entry.entity)
        if current != entry.key.key:
            raise InvalidTransitionError(
                f"{entry.key} changed its key to {current!r}; remove it and add a new entity instead."
            )

    def _change_set(self, entries: Iterable[TrackedEntry], policy: Optional[OrderingPolicy]) -> ChangeSet:
        changes = [self._to_change(entry) for entry in entries if entry.state.is_pending]
        ordered = apply_policy(policy or DeletesLastPolicy(), changes)
        return ChangeSet(ordered)

    def _to_change(self, entry: TrackedEntry) -> Change:
        self._check_key(entry)
        mapping = self.mappings.get(entry.handle.entity_type)
        if entry.state is LifecycleState.REMOVED:
            values = copy.deepcopy(entry.snapshot)
        else:
            values = mapping.extract(entry.entity)
        original = None if entry.state is LifecycleState.NEW else copy.deepcopy(entry.snapshot)
        return Change(
            entity_type=mapping.entity_type,
            name=mapping.name,
            key=entry.key.key,
            key_fields=mapping.key_fields,
            state=entry.state,
            values=values,
            original=original,
        )
