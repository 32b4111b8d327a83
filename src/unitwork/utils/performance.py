"""
Commit statistics and slow-apply thresholds.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from ..persistence.change_set import ChangeSet

SLOW_APPLY_ENV = "UNITWORK_SLOW_APPLY_MS"


def resolve_slow_apply_ms(*, default: int = 100, override: Optional[int] = None) -> int:
    """
    Resolve the slow-apply warning threshold.

    An explicit ``override`` wins, then the ``UNITWORK_SLOW_APPLY_MS``
    environment variable, then ``default``.
    """

    if override is not None:
        return override
    raw = os.getenv(SLOW_APPLY_ENV)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{SLOW_APPLY_ENV} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{SLOW_APPLY_ENV} must not be negative, got {value}")
    return value


@dataclass
class CommitStats:
    commits: int = 0
    failures: int = 0
    inserts: int = 0
    updates: int = 0
    deletes: int = 0
    total_ms: float = 0.0
    last_ms: float = 0.0
    errors: List[str] = field(default_factory=list)

    def record_success(self, change_set: "ChangeSet", elapsed_ms: float) -> None:
        self.commits += 1
        self.inserts += len(change_set.inserts)
        self.updates += len(change_set.updates)
        self.deletes += len(change_set.deletes)
        self.total_ms += elapsed_ms
        self.last_ms = elapsed_ms

    def record_failure(self, error: BaseException, elapsed_ms: float) -> None:
        self.failures += 1
        self.total_ms += elapsed_ms
        self.last_ms = elapsed_ms
        self.errors.append(f"{type(error).__name__}: {error}")

    @property
    def average_ms(self) -> float:
        attempts = self.commits + self.failures
        if attempts == 0:
            return 0.0
        return self.total_ms / attempts

    def summary(self) -> dict[str, object]:
        return {
            "commits": self.commits,
            "failures": self.failures,
            "inserts": self.inserts,
            "updates": self.updates,
            "deletes": self.deletes,
            "average_ms": self.average_ms,
            "last_ms": self.last_ms,
        }
