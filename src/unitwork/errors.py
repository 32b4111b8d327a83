"""
Error hierarchy for unitwork.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from .persistence.change_set import Change


class UnitOfWorkError(Exception):
    """Base error for every failure raised by unitwork."""


class TrackingError(UnitOfWorkError):
    """Raised when the change tracker is used in an unsupported way."""


class DuplicateHandleError(TrackingError):
    """Raised when an entity identity is registered twice in one session."""


class InvalidTransitionError(TrackingError):
    """Raised when a lifecycle transition is not allowed."""


class UntrackedEntityError(InvalidTransitionError):
    """Raised when a transition targets an identity the tracker does not know."""


class MappingError(UnitOfWorkError):
    """Raised when an entity type is unmapped or an entity cannot be keyed."""


class OrderingPolicyError(UnitOfWorkError):
    """Raised when an ordering policy drops, duplicates or invents changes."""


class SessionError(UnitOfWorkError):
    """Base error for unit of work session misuse."""


class SessionClosedError(SessionError):
    """Raised when a session is used after a terminal action."""


class SessionBusyError(SessionError):
    """Raised when a session is used while a commit is in flight."""


class TransactionError(UnitOfWorkError):
    """Raised when a backend transaction is begun, committed or rolled back out of order."""


class BackendUnavailableError(UnitOfWorkError):
    """Raised when a backend cannot start a transaction."""


class BackendConfigurationError(UnitOfWorkError):
    """Raised when backend configuration or required drivers are invalid."""


class BackendError(UnitOfWorkError):
    """
    Wraps a failure reported by a persistence backend while applying changes.

    ``failed_changes`` lists the change set entries the backend could pin the
    failure on; it is empty when the backend cannot tell.
    """

    def __init__(self, message: str, *, failed_changes: Optional[Iterable["Change"]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.failed_changes: tuple["Change", ...] = tuple(failed_changes or ())
