"""
Ordering policies deciding the sequence in which changes reach a backend.

The engine cannot know foreign-key relationships, so callers plug in a
policy. The default keeps registration order and flushes deletes last.
"""

from __future__ import annotations

from collections import Counter
from typing import Protocol, Sequence

from ..errors import OrderingPolicyError
from .change_set import Change


class OrderingPolicy(Protocol):
    """
    Strategy returning a permutation of the given changes.
    """

    def order(self, changes: Sequence[Change]) -> Sequence[Change]: ...


class DeletesLastPolicy:
    """
    Stable registration order with every removal after all inserts and updates.
    """

    def order(self, changes: Sequence[Change]) -> Sequence[Change]:
        writes = [change for change in changes if not change.is_delete]
        deletes = [change for change in changes if change.is_delete]
        return writes + deletes


class TypeOrderPolicy:
    """
    Orders inserts and updates by type precedence, deletes in reverse precedence.

    ``types`` lists parent types before the types that reference them. Types
    not listed follow the listed ones, in registration order.
    """

    def __init__(self, types: Sequence[type]) -> None:
        self.types = tuple(types)
        self._rank = {entity_type: index for index, entity_type in enumerate(self.types)}

    def order(self, changes: Sequence[Change]) -> Sequence[Change]:
        unlisted = len(self.types)
        writes = [change for change in changes if not change.is_delete]
        deletes = [change for change in changes if change.is_delete]
        # list.sort is stable: registration order survives within a rank.
        writes.sort(key=lambda change: self._rank.get(change.entity_type, unlisted))
        deletes.sort(key=lambda change: -self._rank.get(change.entity_type, unlisted))
        return writes + deletes


def apply_policy(policy: OrderingPolicy, changes: Sequence[Change]) -> list[Change]:
    """
    Run ``policy`` and check it returned exactly the changes it was given.
    """

    ordered = list(policy.order(list(changes)))
    expected = Counter(change.identity for change in changes)
    received = Counter(change.identity for change in ordered)
    if expected != received:
        missing = sorted(str(key) for key in (expected - received))
        extra = sorted(str(key) for key in (received - expected))
        raise OrderingPolicyError(
            f"{type(policy).__name__} must return a permutation of its input "
            f"(missing={missing}, unexpected={extra})"
        )
    return ordered
