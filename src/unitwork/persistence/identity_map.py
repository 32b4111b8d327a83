"""
Identity map holding one tracked entry per entity identity.
"""

from __future__ import annotations

from threading import RLock
from typing import TYPE_CHECKING, Dict, Iterator, Optional

from ..core import EntityKey

if TYPE_CHECKING:
    from .change_tracker import TrackedEntry


class IdentityMap:
    """
    Stores tracked entries keyed by (entity type, key) in registration order.
    """

    def __init__(self) -> None:
        self._store: Dict[EntityKey, "TrackedEntry"] = {}
        self._lock = RLock()

    def add(self, entry: "TrackedEntry") -> None:
        with self._lock:
            self._store[entry.handle.key] = entry

    def get(self, key: EntityKey) -> Optional["TrackedEntry"]:
        with self._lock:
            return self._store.get(key)

    def remove(self, key: EntityKey) -> Optional["TrackedEntry"]:
        with self._lock:
            return self._store.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def values(self) -> list["TrackedEntry"]:
        with self._lock:
            return list(self._store.values())

    def copy(self) -> Dict[EntityKey, "TrackedEntry"]:
        with self._lock:
            return dict(self._store)

    def replace(self, entries: Dict[EntityKey, "TrackedEntry"]) -> None:
        with self._lock:
            self._store = dict(entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._store

    def __iter__(self) -> Iterator[EntityKey]:
        with self._lock:
            return iter(list(self._store))

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)
