"""
unitwork public package initialization.

Exposes the unit of work, repositories, mappings and the reference
backends; database drivers are only imported when a backend connects.
"""

from .backends import (  # noqa: F401
    BackendConfig,
    InMemoryBackend,
    MySQLBackend,
    PersistenceBackend,
    PostgresBackend,
    SQLiteBackend,
    TransactionHandle,
    create_backend,
)
from .core import EntityHandle, EntityKey, EntityMapping, LifecycleState, MappingRegistry  # noqa: F401
from .errors import (  # noqa: F401
    BackendConfigurationError,
    BackendError,
    BackendUnavailableError,
    DuplicateHandleError,
    InvalidTransitionError,
    MappingError,
    OrderingPolicyError,
    SessionBusyError,
    SessionClosedError,
    SessionError,
    TrackingError,
    TransactionError,
    UnitOfWorkError,
    UntrackedEntityError,
)
from .hooks import hooks  # noqa: F401
from .persistence import (  # noqa: F401
    Change,
    ChangeSet,
    DeletesLastPolicy,
    Repository,
    SessionState,
    TypeOrderPolicy,
    UnitOfWork,
    UnitOfWorkFactory,
)

__version__ = "0.1.0"

__all__ = [
    "BackendConfig",
    "BackendConfigurationError",
    "BackendError",
    "BackendUnavailableError",
    "Change",
    "ChangeSet",
    "DeletesLastPolicy",
    "DuplicateHandleError",
    "EntityHandle",
    "EntityKey",
    "EntityMapping",
    "InMemoryBackend",
    "InvalidTransitionError",
    "LifecycleState",
    "MappingError",
    "MappingRegistry",
    "MySQLBackend",
    "OrderingPolicyError",
    "PersistenceBackend",
    "PostgresBackend",
    "Repository",
    "SQLiteBackend",
    "SessionBusyError",
    "SessionClosedError",
    "SessionError",
    "SessionState",
    "TrackingError",
    "TransactionError",
    "TransactionHandle",
    "TypeOrderPolicy",
    "UnitOfWork",
    "UnitOfWorkError",
    "UnitOfWorkFactory",
    "UntrackedEntityError",
    "create_backend",
    "hooks",
]
