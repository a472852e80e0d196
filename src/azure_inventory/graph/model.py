from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, TypedDict, Union

from .keys import generate_relationship_key

Entity = Dict[str, Any]
Relationship = Dict[str, Any]
EntityClass = Union[str, List[str]]


class RelationshipClass(str, Enum):
    HAS = "HAS"
    CONTAINS = "CONTAINS"
    USES = "USES"
    PROTECTS = "PROTECTS"
    ALLOWS = "ALLOWS"
    DENIES = "DENIES"
    ASSIGNED = "ASSIGNED"
    CONNECTS = "CONNECTS"


class RelationshipDirection(str, Enum):
    FORWARD = "FORWARD"
    REVERSE = "REVERSE"


class PlaceholderEntity(TypedDict):
    _type: str
    _key: str


class EntityMetadata(TypedDict):
    _type: str
    _class: EntityClass
    resourceName: str


class RelationshipMetadata(TypedDict):
    _type: str
    _class: str
    sourceType: str
    targetType: str


def entity_metadata(entity_type: str, entity_class: EntityClass, resource_name: str) -> EntityMetadata:
    return {"_type": entity_type, "_class": entity_class, "resourceName": resource_name}


def generate_relationship_type(relationship_class: str, from_type: str, to_type: str) -> str:
    """
    Build a relationship _type such as azure_vnet_contains_subnet.
    The underscore-delimited prefix shared by both endpoint types is written once.
    """
    from_parts = from_type.split("_")
    to_parts = to_type.split("_")
    shared = 0
    # Keep at least one segment of the target type.
    while shared < len(to_parts) - 1 and shared < len(from_parts) and from_parts[shared] == to_parts[shared]:
        shared += 1
    target = "_".join(to_parts[shared:])
    return f"{from_type}_{relationship_class.lower()}_{target}"


def relationship_metadata(relationship_class: RelationshipClass, source_type: str, target_type: str) -> RelationshipMetadata:
    return {
        "_type": generate_relationship_type(relationship_class.value, source_type, target_type),
        "_class": relationship_class.value,
        "sourceType": source_type,
        "targetType": target_type,
    }


def is_placeholder_entity(entity: Entity) -> bool:
    """
    A placeholder carries only _type and _key; any entity without _class is one.
    """
    return entity.get("_class") is None


def create_direct_relationship(
    relationship_class: RelationshipClass,
    from_entity: Entity,
    to_entity: Entity,
    *,
    key: Optional[str] = None,
    relationship_type: Optional[str] = None,
    properties: Optional[Dict[str, Any]] = None,
) -> Relationship:
    """
    Relationship between two known endpoints.
    Defaults: _key "<fromKey>|<class>|<toKey>", _type derived from both endpoint
    types and displayName equal to the class.
    """
    cls = relationship_class.value
    rel: Relationship = {
        "_key": key or generate_relationship_key(from_entity["_key"], cls, to_entity["_key"]),
        "_type": relationship_type or generate_relationship_type(cls, from_entity["_type"], to_entity["_type"]),
        "_class": cls,
        "_fromEntityKey": from_entity["_key"],
        "_toEntityKey": to_entity["_key"],
        "displayName": cls,
    }
    if properties:
        rel.update(properties)
    return rel


def create_mapped_relationship(
    relationship_class: RelationshipClass,
    source_entity_key: str,
    target_entity: Entity,
    target_filter_keys: Sequence[Sequence[str]],
    *,
    key: str,
    relationship_type: str,
    direction: RelationshipDirection = RelationshipDirection.FORWARD,
    properties: Optional[Dict[str, Any]] = None,
    skip_target_creation: Optional[bool] = None,
) -> Relationship:
    """
    Relationship whose target is described, not referenced: the ingestion backend
    finds or creates the target using target_filter_keys. skipTargetCreation is
    only written when skip_target_creation is given.
    """
    rel: Relationship = {
        "_key": key,
        "_type": relationship_type,
        "_class": relationship_class.value,
        "_mapping": {
            "relationshipDirection": direction.value,
            "sourceEntityKey": source_entity_key,
            "targetEntity": dict(target_entity),
            "targetFilterKeys": [list(keys) for keys in target_filter_keys],
        },
    }
    if skip_target_creation is not None:
        rel["_mapping"]["skipTargetCreation"] = skip_target_creation
    if properties:
        rel.update(properties)
    return rel
