"""
Transaction manager closing backend transactions on every exit path.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

from ..backends.base import PersistenceBackend, TransactionHandle
from ..errors import TransactionError
from ..utils import get_logger


class TransactionManager:
    """
    Coordinates begin/commit/rollback against a persistence backend.
    """

    def __init__(self, backend: PersistenceBackend) -> None:
        self.backend = backend
        self.current: Optional[TransactionHandle] = None
        self.logger = get_logger("persistence.transaction")

    @property
    def active(self) -> bool:
        return self.current is not None

    def begin(self) -> TransactionHandle:
        if self.current is not None:
            raise TransactionError(f"Transaction {self.current.id} is still open.")
        self.current = self.backend.begin_transaction()
        return self.current

    def commit(self) -> None:
        if self.current is None:
            raise TransactionError("No active transaction to commit.")
        self.backend.commit_transaction(self.current)
        self.current = None

    def rollback(self) -> None:
        if self.current is None:
            raise TransactionError("No active transaction to roll back.")
        handle, self.current = self.current, None
        self.backend.rollback_transaction(handle)

    def release(self) -> None:
        """
        Roll back the open transaction, if any.
        """

        if self.current is not None:
            self.rollback()

    @contextmanager
    def transaction(self) -> Generator[TransactionHandle, None, None]:
        handle = self.begin()
        try:
            yield handle
            self.commit()
        except BaseException:
            self._rollback_after_failure()
            raise

    def _rollback_after_failure(self) -> None:
        if self.current is None:
            return
        try:
            self.rollback()
        except Exception:
            # The original failure is re-raised by the caller; this one is logged.
            self.logger.exception("Rollback after a failed transaction also failed")
