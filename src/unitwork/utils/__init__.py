"""
Utility helpers shared across unitwork packages.
"""

from .logging import configure_logging, correlation_scope, get_logger, time_call
from .naming import camel_to_snake, storage_name
from .performance import CommitStats, resolve_slow_apply_ms

__all__ = [
    "CommitStats",
    "camel_to_snake",
    "configure_logging",
    "correlation_scope",
    "get_logger",
    "resolve_slow_apply_ms",
    "storage_name",
    "time_call",
]
