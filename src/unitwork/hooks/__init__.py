"""
Lifecycle hooks registry for unit of work sessions.
"""

from .dispatcher import CHANGE_EVENTS, SESSION_EVENTS, HookDispatcher, HookHandler, hooks

__all__ = ["CHANGE_EVENTS", "SESSION_EVENTS", "HookDispatcher", "HookHandler", "hooks"]
