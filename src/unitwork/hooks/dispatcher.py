"""
Hook dispatcher coordinating unit of work lifecycle events.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Type

if TYPE_CHECKING:
    from ..persistence.change_set import Change

HookHandler = Callable[..., None]

SESSION_EVENTS = frozenset({"before_commit", "after_commit", "commit_failed", "after_rollback"})
CHANGE_EVENTS = frozenset({"after_insert", "after_update", "after_delete"})


class HookDispatcher:
    """
    Maintains global and per-entity-type hook handlers.

    Session events are fired with ``change=None``; change events carry the
    committed :class:`Change` and also reach handlers registered for its
    entity type.
    """

    def __init__(self) -> None:
        self._global_handlers: Dict[str, List[HookHandler]] = defaultdict(list)
        self._type_handlers: Dict[Type[Any], Dict[str, List[HookHandler]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def register(self, event: str, handler: HookHandler, *, entity_type: Optional[type] = None) -> None:
        if event not in SESSION_EVENTS and event not in CHANGE_EVENTS:
            raise ValueError(f"Unknown hook event '{event}'")
        if entity_type is not None:
            if event not in CHANGE_EVENTS:
                raise ValueError(f"'{event}' is a session event and cannot be bound to a type")
            self._type_handlers[entity_type][event].append(handler)
        else:
            self._global_handlers[event].append(handler)

    def fire(self, event: str, change: Optional["Change"], **context: Any) -> None:
        handlers = list(self._global_handlers.get(event, []))
        if change is not None:
            handlers.extend(self._type_handlers.get(change.entity_type, {}).get(event, []))
        for handler in handlers:
            handler(change, **context)

    def clear(self) -> None:
        self._global_handlers.clear()
        self._type_handlers.clear()


hooks = HookDispatcher()
