from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, runtime_checkable

from ..util.errors import DuplicateKeyError
from .model import Entity, Relationship


@runtime_checkable
class JobState(Protocol):
    """
    Run-scoped store of collected graph objects.
    Converters look entities up (find_entity) but never add any; steps publish
    right after conversion.
    """

    def add_entities(self, entities: Iterable[Entity]) -> List[Entity]:
        ...

    def add_relationships(self, relationships: Iterable[Relationship]) -> List[Relationship]:
        ...

    def find_entity(self, key: str) -> Optional[Entity]:
        ...

    def set_data(self, key: str, value: Any) -> None:
        ...

    def get_data(self, key: str) -> Any:
        ...


class InMemoryJobState:
    """
    JobState kept in insertion-ordered dicts. Publishing a _key twice raises
    DuplicateKeyError.
    """

    def __init__(self) -> None:
        self._entities: Dict[str, Entity] = {}
        self._relationships: Dict[str, Relationship] = {}
        self._data: Dict[str, Any] = {}

    def add_entity(self, entity: Entity) -> Entity:
        key = entity["_key"]
        if key in self._entities:
            raise DuplicateKeyError(key, "entity")
        self._entities[key] = entity
        return entity

    def add_entities(self, entities: Iterable[Entity]) -> List[Entity]:
        return [self.add_entity(e) for e in entities]

    def add_relationship(self, relationship: Relationship) -> Relationship:
        key = relationship["_key"]
        if key in self._relationships:
            raise DuplicateKeyError(key, "relationship")
        self._relationships[key] = relationship
        return relationship

    def add_relationships(self, relationships: Iterable[Relationship]) -> List[Relationship]:
        return [self.add_relationship(r) for r in relationships]

    def has_key(self, key: str) -> bool:
        return key in self._entities or key in self._relationships

    def find_entity(self, key: str) -> Optional[Entity]:
        return self._entities.get(key)

    def iterate_entities(self, entity_type: Optional[str] = None) -> Iterator[Entity]:
        for entity in list(self._entities.values()):
            if entity_type is None or entity.get("_type") == entity_type:
                yield entity

    def iterate_relationships(self, relationship_type: Optional[str] = None) -> Iterator[Relationship]:
        for rel in list(self._relationships.values()):
            if relationship_type is None or rel.get("_type") == relationship_type:
                yield rel

    def set_data(self, key: str, value: Any) -> None:
        self._data[key] = value

    def get_data(self, key: str) -> Any:
        return self._data.get(key)

    @property
    def entity_count(self) -> int:
        return len(self._entities)

    @property
    def relationship_count(self) -> int:
        return len(self._relationships)

    @property
    def entities(self) -> List[Entity]:
        return list(self._entities.values())

    @property
    def relationships(self) -> List[Relationship]:
        return list(self._relationships.values())
