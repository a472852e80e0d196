from __future__ import annotations

from typing import Any, Optional

from ..util.errors import InvalidRecordError

UNDEFINED_KEY_PART = "undefined"


def generate_entity_key(entity_type: str, natural_id: Optional[str]) -> str:
    """
    Deterministic entity _key: "<type>_<naturalId>".
    Keys are unique as long as natural ids are unique within their type.
    """
    if natural_id is None or natural_id == "":
        raise InvalidRecordError(f"Cannot generate {entity_type} key without an id")
    return f"{entity_type}_{natural_id}"


def generate_relationship_key(from_key: str, relationship_class: str, to_key: str) -> str:
    return f"{from_key}|{relationship_class.lower()}|{to_key}"


def key_part(value: Any) -> str:
    """
    Render one component of a composite key.
    Booleans render as true/false and an absent value as "undefined", which keeps
    keys identical to the ones already present in existing graphs.
    """
    if value is None:
        return UNDEFINED_KEY_PART
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def join_key_parts(*parts: Any, separator: str = "/") -> str:
    return separator.join(key_part(p) for p in parts)
