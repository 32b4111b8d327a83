"""
In-process backend keeping entity states in dictionaries.
"""

from __future__ import annotations

import copy
from threading import RLock
from typing import TYPE_CHECKING, Any, Dict, Hashable, List, Optional, Tuple

from ..errors import BackendError, BackendUnavailableError
from ..utils import get_logger
from .base import TransactionHandle

if TYPE_CHECKING:
    from ..core import EntityMapping
    from ..persistence.change_set import ChangeSet

StoreKey = Tuple[str, Hashable]


class InMemoryBackend:
    """
    Atomic dictionary store: changes are staged on a copy and swapped in on commit.

    Only one transaction may be open at a time. Every committed change set
    is appended to :attr:`history`.
    """

    name = "memory"

    def __init__(self) -> None:
        self._store: Dict[StoreKey, Dict[str, Any]] = {}
        self._staged: Optional[Dict[StoreKey, Dict[str, Any]]] = None
        self._pending: List["ChangeSet"] = []
        self._active: Optional[str] = None
        self._closed = False
        self._lock = RLock()
        self.history: List["ChangeSet"] = []
        self.logger = get_logger("backends.memory")

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def begin_transaction(self) -> TransactionHandle:
        with self._lock:
            if self._closed:
                raise BackendUnavailableError("InMemoryBackend is closed.")
            if self._active is not None:
                raise BackendUnavailableError("InMemoryBackend already has an open transaction.")
            handle = TransactionHandle(self.name)
            self._active = handle.id
            self._staged = dict(self._store)
            self._pending = []
            return handle

    def apply(self, transaction: TransactionHandle, change_set: "ChangeSet") -> None:
        with self._lock:
            self._ensure_active(transaction)
            # A failed apply must leave earlier staged work untouched.
            staged = dict(self._staged or {})
            for change in change_set:
                store_key = (change.name, change.key)
                exists = store_key in staged
                if change.is_insert:
                    if exists:
                        raise BackendError(f"{change.identity} already exists.", failed_changes=[change])
                    staged[store_key] = copy.deepcopy(dict(change.values))
                elif change.is_update:
                    if not exists:
                        raise BackendError(f"{change.identity} does not exist.", failed_changes=[change])
                    staged[store_key] = copy.deepcopy(dict(change.values))
                elif change.is_delete:
                    if not exists:
                        raise BackendError(f"{change.identity} does not exist.", failed_changes=[change])
                    del staged[store_key]
                else:
                    raise BackendError(f"Unsupported change state {change.state.value}.", failed_changes=[change])
            self._staged = staged
            self._pending.append(change_set)
            self.logger.debug("Staged %s changes", len(change_set))

    def commit_transaction(self, transaction: TransactionHandle) -> None:
        with self._lock:
            self._ensure_active(transaction)
            self._store = self._staged if self._staged is not None else self._store
            self.history.extend(self._pending)
            self._finish()

    def rollback_transaction(self, transaction: TransactionHandle) -> None:
        with self._lock:
            if self._active != transaction.id:
                return
            self._finish()

    def _ensure_active(self, transaction: TransactionHandle) -> None:
        if self._active is None or self._active != transaction.id:
            raise BackendError(f"Transaction {transaction.id} is not active.")

    def _finish(self) -> None:
        self._active = None
        self._staged = None
        self._pending = []

    # ------------------------------------------------------------------ #
    # Reads and direct access
    # ------------------------------------------------------------------ #
    def load(self, mapping: "EntityMapping", key: Hashable) -> Optional[Dict[str, Any]]:
        with self._lock:
            state = self._store.get((mapping.name, key))
            return copy.deepcopy(state) if state is not None else None

    def seed(self, name: str, key: Hashable, values: Dict[str, Any]) -> None:
        """
        Store ``values`` directly as committed state, bypassing transactions.
        """

        with self._lock:
            self._store[(name, key)] = copy.deepcopy(values)

    def rows(self, name: str) -> Dict[Hashable, Dict[str, Any]]:
        with self._lock:
            return {key: copy.deepcopy(state) for (stored, key), state in self._store.items() if stored == name}

    @property
    def in_transaction(self) -> bool:
        return self._active is not None

    def close(self) -> None:
        with self._lock:
            self._finish()
            self._closed = True
