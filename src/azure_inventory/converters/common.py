from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..azure.web_linker import AzureWebLinker
from ..graph.model import Entity, EntityMetadata
from ..util.errors import InvalidRecordError

_RESOURCE_GROUP_NAME = re.compile(r"/resource[gG]roups/([^/]+)", re.IGNORECASE)
_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")

Record = Mapping[str, Any]


def require_id(record: Record, what: str) -> str:
    """
    Return record["id"], raising InvalidRecordError when it is missing or empty.
    """
    value = record.get("id")
    if not value or not isinstance(value, str):
        name = record.get("name") or record.get("displayName") or "<unnamed>"
        raise InvalidRecordError(f"{what} record {name!r} has no id")
    return value


def resource_group_name(resource_id: Optional[str]) -> Optional[str]:
    if not resource_id:
        return None
    match = _RESOURCE_GROUP_NAME.search(resource_id)
    return match.group(1) if match else None


def tag_properties(tags: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Flatten resource tags to "tag.<name>" properties; an "environment" tag is
    also published as the top-level environment property.
    """
    out: Dict[str, Any] = {}
    if not tags:
        return out
    for name, value in tags.items():
        out[f"tag.{name}"] = value
    if "environment" in tags:
        out["environment"] = tags["environment"]
    return out


def camel_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(lambda m: m.group(1).upper(), name)


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def convert_properties(record: Record) -> Dict[str, Any]:
    """
    Copy the scalar (and list-of-scalar) fields of a record with camelCase keys.
    Nested objects are dropped.
    """
    out: Dict[str, Any] = {}
    for key, value in record.items():
        if _is_scalar(value):
            out[camel_case(key)] = value
        elif isinstance(value, list) and all(_is_scalar(v) for v in value):
            out[camel_case(key)] = list(value)
    return out


def prefix_properties(properties: Mapping[str, Any], prefix: str) -> Dict[str, Any]:
    return {prefix + key[:1].upper() + key[1:]: value for key, value in properties.items()}


def nested(record: Optional[Record], *path: str) -> Any:
    """record["a"]["b"]... with None for any missing hop."""
    current: Any = record
    for part in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def compact_list(values: Iterable[Any]) -> List[Any]:
    return [v for v in values if v is not None]


def create_resource_entity(
    web_linker: AzureWebLinker,
    record: Record,
    metadata: EntityMetadata,
    properties: Optional[Dict[str, Any]] = None,
    *,
    what: Optional[str] = None,
) -> Entity:
    """
    Base entity for an Azure Resource Manager resource.
    _key is the ARM resource id, so find_entity(resource_id) finds it later.
    """
    resource_id = require_id(record, what or metadata["resourceName"])
    entity: Entity = {
        "_key": resource_id,
        "_type": metadata["_type"],
        "_class": metadata["_class"],
        "id": resource_id,
        "name": record.get("name"),
        "displayName": record.get("name") or resource_id,
        "type": record.get("type"),
        "region": record.get("location"),
        "resourceGroup": resource_group_name(resource_id),
        "webLink": web_linker.portal_resource_url(resource_id),
    }
    entity.update(tag_properties(record.get("tags")))
    if properties:
        entity.update(properties)
    return entity
