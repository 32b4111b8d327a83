"""
Unit of Work coordinating repositories, the change tracker and a backend.
"""

from __future__ import annotations

import threading
import time
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Sequence, Union

from ..backends.base import EntityReader, PersistenceBackend
from ..core import EntityMapping, LifecycleState, MappingRegistry
from ..errors import MappingError, SessionBusyError, SessionClosedError, SessionError
from ..hooks import HookDispatcher, hooks as default_hooks
from ..utils import CommitStats, correlation_scope, get_logger, resolve_slow_apply_ms, time_call
from .change_set import ChangeSet
from .change_tracker import ChangeTracker
from .ordering import DeletesLastPolicy, OrderingPolicy
from .repository import Repository
from .transaction import TransactionManager

Mappings = Union[MappingRegistry, Sequence[EntityMapping]]

_CHANGE_EVENTS = {
    LifecycleState.NEW: "after_insert",
    LifecycleState.MODIFIED: "after_update",
    LifecycleState.REMOVED: "after_delete",
}


class SessionState(str, Enum):
    OPEN = "open"
    COMMITTING = "committing"
    COMMITTED = "committed"
    FAILED = "failed"
    CLOSED = "closed"


class UnitOfWork:
    """
    Batches entity mutations from several repositories into one atomic commit.

    A session is single-owner: repository calls or a second ``commit`` made
    while a commit is in flight fail with :class:`SessionBusyError`. Used as a
    context manager, the session is rolled back on exit unless ``commit``
    completed; exceptions are never swallowed.

    Usage::

        with factory() as uow:
            author = uow.writer.get(1)
            author.country = "UK"
            uow.book.add(Book(isbn="x", title="New", writer_id=1))
            uow.commit()
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        mappings: Mappings,
        *,
        ordering_policy: Optional[OrderingPolicy] = None,
        hooks: Optional[HookDispatcher] = None,
        reader: Optional[EntityReader] = None,
        slow_apply_ms: Optional[int] = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.backend = backend
        self.mappings = mappings if isinstance(mappings, MappingRegistry) else MappingRegistry(mappings)
        self.tracker = ChangeTracker(self.mappings)
        self.ordering_policy = ordering_policy or DeletesLastPolicy()
        self.hooks = hooks if hooks is not None else default_hooks
        self.transactions = TransactionManager(backend)
        self.stats = CommitStats()
        self.slow_apply_ms = resolve_slow_apply_ms(default=100, override=slow_apply_ms)
        self.logger = get_logger("persistence.unit_of_work")
        self._state = SessionState.OPEN
        self._busy = threading.Lock()
        if reader is None and isinstance(backend, EntityReader):
            reader = backend
        self._repositories: Dict[type, Repository[Any]] = {
            mapping.entity_type: Repository(self, mapping, reader) for mapping in self.mappings
        }

    def __repr__(self) -> str:
        return f"UnitOfWork(id={self.id[:8]}, state={self._state.value}, tracked={len(self.tracker)})"

    # ------------------------------------------------------------------ #
    # Repositories
    # ------------------------------------------------------------------ #
    def repository(self, entity_type: type) -> Repository[Any]:
        mapping = self.mappings.get(entity_type)
        return self._repositories[mapping.entity_type]

    __getitem__ = repository

    @property
    def repositories(self) -> Dict[str, Repository[Any]]:
        return {repo.mapping.repository_name: repo for repo in self._repositories.values()}

    def __getattr__(self, name: str) -> Repository[Any]:
        repositories = self.__dict__.get("_repositories")
        if repositories:
            for repo in repositories.values():
                if repo.mapping.repository_name == name:
                    return repo
        raise AttributeError(f"{type(self).__name__} has no attribute or repository '{name}'")

    # ------------------------------------------------------------------ #
    # Context management
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.dispose()
        return False

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is SessionState.CLOSED

    @contextmanager
    def guard(self) -> Iterator[None]:
        """
        Hold the session for one repository call.

        Raises :class:`SessionBusyError` while a commit, rollback or another
        guarded call is in flight, and :class:`SessionClosedError` once the
        session is committed or closed.
        """

        if not self._busy.acquire(blocking=False):
            raise SessionBusyError(f"Session {self.id} is busy.")
        try:
            if self._state in (SessionState.COMMITTED, SessionState.CLOSED):
                raise SessionClosedError(f"Session {self.id} is {self._state.value}.")
            yield
        finally:
            self._busy.release()

    def has_changes(self) -> bool:
        return self.tracker.has_changes()

    def pending_changes(self) -> ChangeSet:
        """
        Preview the change set a commit would send, without reclassifying entries.
        """

        with self.guard():
            return self.tracker.preview_change_set(self.ordering_policy)

    # ------------------------------------------------------------------ #
    # Commit / rollback
    # ------------------------------------------------------------------ #
    def commit(self) -> ChangeSet:
        """
        Detect changes, apply them atomically and reset the tracking baseline.

        Returns the change set that was applied. On any failure the tracker is
        restored to its pre-commit bookkeeping, the session moves to FAILED
        (from which ``commit`` may be retried) and the error is re-raised.
        """

        if not self._busy.acquire(blocking=False):
            raise SessionBusyError(f"Session {self.id} is busy.")
        try:
            if self._state in (SessionState.COMMITTED, SessionState.CLOSED):
                raise SessionClosedError(f"Session {self.id} is {self._state.value}.")
            with correlation_scope(self.id):
                return self._commit()
        finally:
            self._busy.release()

    def _commit(self) -> ChangeSet:
        self._state = SessionState.COMMITTING
        start = time.monotonic()
        self.tracker.checkpoint()
        try:
            self.tracker.detect_dirty()
            change_set = self.tracker.build_change_set(self.ordering_policy)
            self.hooks.fire("before_commit", None, session=self, change_set=change_set)
            if change_set.is_empty:
                self.logger.debug("Nothing to commit")
            else:
                with time_call(
                    "unit_of_work.apply",
                    self.logger,
                    threshold_ms=self.slow_apply_ms,
                    changes=change_set.describe(),
                ):
                    with self.transactions.transaction() as transaction:
                        self.backend.apply(transaction, change_set)
        except BaseException as exc:
            self.tracker.discard()
            self._state = SessionState.FAILED
            self.stats.record_failure(exc, self._elapsed_ms(start))
            self.logger.warning("Commit failed: %s: %s", type(exc).__name__, exc)
            self._fire_commit_failed(exc)
            raise

        self.tracker.commit()
        self._state = SessionState.COMMITTED
        self.stats.record_success(change_set, self._elapsed_ms(start))
        self.logger.info(
            "Committed %s changes (%s inserts, %s updates, %s deletes)",
            len(change_set),
            len(change_set.inserts),
            len(change_set.updates),
            len(change_set.deletes),
        )
        self.hooks.fire("after_commit", None, session=self, change_set=change_set)
        for change in change_set:
            self.hooks.fire(_CHANGE_EVENTS[change.state], change, session=self)
        return change_set

    def begin_next(self) -> None:
        """
        Reopen a committed session, keeping committed entities as the new baseline.
        """

        if self._state is SessionState.OPEN:
            return
        if self._state is SessionState.COMMITTING:
            raise SessionBusyError(f"Session {self.id} is committing.")
        if self._state is SessionState.CLOSED:
            raise SessionClosedError(f"Session {self.id} is closed.")
        if self._state is SessionState.FAILED:
            raise SessionError(f"Session {self.id} failed; retry commit() or roll back.")
        self._state = SessionState.OPEN

    def rollback(self) -> None:
        """
        Abandon pending changes and close the session. A no-op once closed.

        Closing a committed session leaves entity objects as they are; edits
        made after the commit are not persisted and not reverted.
        """

        if self._state is SessionState.CLOSED:
            return
        if not self._busy.acquire(blocking=False):
            raise SessionBusyError(f"Session {self.id} is busy.")
        try:
            previous = self._state
            try:
                if previous is not SessionState.COMMITTED:
                    self.tracker.reset()
                self.transactions.release()
            finally:
                self._state = SessionState.CLOSED
        finally:
            self._busy.release()
        self.logger.debug("Session closed from %s", previous.value)
        if previous in (SessionState.OPEN, SessionState.FAILED):
            self.hooks.fire("after_rollback", None, session=self)

    dispose = rollback

    # ------------------------------------------------------------------ #
    def _fire_commit_failed(self, error: BaseException) -> None:
        try:
            self.hooks.fire("commit_failed", None, session=self, error=error)
        except Exception:
            self.logger.exception("commit_failed hook raised while handling %s", type(error).__name__)

    @staticmethod
    def _elapsed_ms(start: float) -> float:
        return (time.monotonic() - start) * 1000


class UnitOfWorkFactory:
    """
    Opens a fresh :class:`UnitOfWork` per logical unit of work.
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        mappings: Mappings = (),
        *,
        ordering_policy: Optional[OrderingPolicy] = None,
        hooks: Optional[HookDispatcher] = None,
        slow_apply_ms: Optional[int] = None,
    ) -> None:
        self.backend = backend
        self.mappings = mappings if isinstance(mappings, MappingRegistry) else MappingRegistry(mappings)
        self.ordering_policy = ordering_policy
        self.hooks = hooks
        self.slow_apply_ms = slow_apply_ms

    def map(self, entity_type: type, **options: Any) -> EntityMapping:
        return self.mappings.map(entity_type, **options)

    def open(self) -> UnitOfWork:
        if not len(self.mappings):
            raise MappingError("UnitOfWorkFactory has no entity mappings.")
        return UnitOfWork(
            self.backend,
            self.mappings,
            ordering_policy=self.ordering_policy,
            hooks=self.hooks,
            slow_apply_ms=self.slow_apply_ms,
        )

    __call__ = open
