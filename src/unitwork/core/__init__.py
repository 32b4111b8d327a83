"""
Core building blocks: entity identity, lifecycle states and mappings.
"""

from .entity import EntityHandle, EntityKey, LifecycleState
from .mapping import EntityMapping, MappingRegistry

__all__ = [
    "EntityHandle",
    "EntityKey",
    "EntityMapping",
    "LifecycleState",
    "MappingRegistry",
]
