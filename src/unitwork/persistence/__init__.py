"""
Persistence layer components: change tracking, repositories, unit of work.
"""

from ..errors import TransactionError
from .change_set import Change, ChangeSet
from .change_tracker import ChangeTracker, TrackedEntry
from .identity_map import IdentityMap
from .ordering import DeletesLastPolicy, OrderingPolicy, TypeOrderPolicy, apply_policy
from .repository import Repository
from .transaction import TransactionManager
from .unit_of_work import SessionState, UnitOfWork, UnitOfWorkFactory

__all__ = [
    "Change",
    "ChangeSet",
    "ChangeTracker",
    "DeletesLastPolicy",
    "IdentityMap",
    "OrderingPolicy",
    "Repository",
    "SessionState",
    "TrackedEntry",
    "TransactionError",
    "TransactionManager",
    "TypeOrderPolicy",
    "UnitOfWork",
    "UnitOfWorkFactory",
    "apply_policy",
]
