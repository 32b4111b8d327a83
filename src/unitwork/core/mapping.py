"""
Entity mappings describing how plain domain objects are keyed and persisted.
"""

from __future__ import annotations

import copy
import dataclasses
from typing import Any, Callable, Dict, Hashable, Iterator, Mapping, Optional, Sequence, Type, Union

from ..errors import MappingError
from ..utils import storage_name
from .entity import EntityHandle, EntityKey

KeySpec = Union[str, Sequence[str], Callable[[Any], Hashable]]
EntityFactory = Callable[[Dict[str, Any]], Any]


def _is_frozen(entity: Any) -> bool:
    params = getattr(type(entity), "__dataclass_params__", None)
    return bool(params and params.frozen)


class EntityMapping:
    """
    Declares key extraction and persisted fields for one entity type.

    ``key`` is an attribute name, a tuple of attribute names for composite
    keys, or a callable returning the key for an entity. Persisted fields
    default to the dataclass fields of the type, or to the public instance
    attributes of plain objects.
    """

    def __init__(
        self,
        entity_type: type,
        *,
        key: KeySpec = "id",
        fields: Optional[Sequence[str]] = None,
        name: Optional[str] = None,
        repository_name: Optional[str] = None,
        factory: Optional[EntityFactory] = None,
    ) -> None:
        if not isinstance(entity_type, type):
            raise MappingError(f"Expected a class to map, got {entity_type!r}")
        self.entity_type = entity_type
        self.name = name or storage_name(entity_type)
        self.repository_name = repository_name or self.name
        self.factory = factory
        self._fields = tuple(fields) if fields is not None else None
        if isinstance(key, str):
            self._key_fields: Optional[tuple[str, ...]] = (key,)
            self._key_func: Optional[Callable[[Any], Hashable]] = None
        elif callable(key):
            self._key_fields = None
            self._key_func = key
        else:
            self._key_fields = tuple(key)
            self._key_func = None
            if not self._key_fields:
                raise MappingError(f"Mapping for '{entity_type.__name__}' declares an empty key.")

    def __repr__(self) -> str:
        return f"EntityMapping({self.entity_type.__name__}, name={self.name!r})"

    @property
    def key_fields(self) -> Optional[tuple[str, ...]]:
        return self._key_fields

    @property
    def field_names_declared(self) -> Optional[tuple[str, ...]]:
        return self._fields

    # ------------------------------------------------------------------ #
    # Identity
    # ------------------------------------------------------------------ #
    def key_of(self, entity: Any) -> Hashable:
        self._check_instance(entity)
        if self._key_func is not None:
            key = self._key_func(entity)
        elif len(self._key_fields) == 1:
            key = getattr(entity, self._key_fields[0], None)
        else:
            key = tuple(getattr(entity, name, None) for name in self._key_fields)
        if key is None or (isinstance(key, tuple) and any(part is None for part in key)):
            raise MappingError(f"{self.entity_type.__name__} instance has no key value.")
        try:
            hash(key)
        except TypeError as exc:
            raise MappingError(f"Key {key!r} of {self.entity_type.__name__} is not hashable.") from exc
        return key

    def identity(self, key: Hashable) -> EntityKey:
        return EntityKey(self.entity_type, key)

    def handle(self, entity: Any) -> EntityHandle:
        return EntityHandle(self.identity(self.key_of(entity)), entity)

    def key_values(self, key: Hashable) -> Dict[str, Any]:
        """
        Spread a key value over the declared key fields.
        """

        if self._key_fields is None:
            raise MappingError(
                f"Mapping for '{self.entity_type.__name__}' uses a key function; "
                "key fields are unknown."
            )
        if len(self._key_fields) == 1:
            return {self._key_fields[0]: key}
        if not isinstance(key, tuple) or len(key) != len(self._key_fields):
            raise MappingError(f"Composite key {key!r} does not match fields {self._key_fields}.")
        return dict(zip(self._key_fields, key))

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #
    def field_names(self, entity: Any) -> tuple[str, ...]:
        if self._fields is not None:
            return self._fields
        if dataclasses.is_dataclass(entity):
            return tuple(f.name for f in dataclasses.fields(entity))
        return tuple(name for name in vars(entity) if not name.startswith("_"))

    def extract(self, entity: Any) -> Dict[str, Any]:
        """
        Return a deep copy of the persisted fields of ``entity``.
        """

        self._check_instance(entity)
        return {name: copy.deepcopy(getattr(entity, name)) for name in self.field_names(entity)}

    def restore(self, entity: Any, state: Mapping[str, Any]) -> Any:
        """
        Write ``state`` back onto ``entity`` and return the object to keep tracking.

        Frozen dataclasses cannot be reverted in place; a fresh instance is
        built from ``state`` instead.
        """

        if _is_frozen(entity):
            return self.build(state)
        for name, value in state.items():
            setattr(entity, name, copy.deepcopy(value))
        return entity

    def build(self, state: Mapping[str, Any]) -> Any:
        values = copy.deepcopy(dict(state))
        if self.factory is not None:
            return self.factory(values)
        return self.entity_type(**values)

    def _check_instance(self, entity: Any) -> None:
        if not isinstance(entity, self.entity_type):
            raise MappingError(
                f"Expected a {self.entity_type.__name__} instance, got {type(entity).__name__}."
            )


class MappingRegistry:
    """
    Holds the mappings known to a unit of work factory.
    """

    def __init__(self, mappings: Sequence[EntityMapping] = ()) -> None:
        self._mappings: Dict[Type[Any], EntityMapping] = {}
        for mapping in mappings:
            self.register(mapping)

    def register(self, mapping: EntityMapping) -> EntityMapping:
        if mapping.entity_type in self._mappings:
            raise MappingError(f"{mapping.entity_type.__name__} is already mapped.")
        names = {existing.repository_name for existing in self._mappings.values()}
        if mapping.repository_name in names:
            raise MappingError(f"Repository name '{mapping.repository_name}' is already in use.")
        self._mappings[mapping.entity_type] = mapping
        return mapping

    def map(self, entity_type: type, **options: Any) -> EntityMapping:
        return self.register(EntityMapping(entity_type, **options))

    def get(self, entity_type: type) -> EntityMapping:
        for klass in entity_type.__mro__:
            mapping = self._mappings.get(klass)
            if mapping is not None:
                return mapping
        raise MappingError(f"{entity_type.__name__} is not mapped.")

    def for_entity(self, entity: Any) -> EntityMapping:
        return self.get(type(entity))

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._mappings

    def __iter__(self) -> Iterator[EntityMapping]:
        return iter(list(self._mappings.values()))

    def __len__(self) -> int:
        return len(self._mappings)
