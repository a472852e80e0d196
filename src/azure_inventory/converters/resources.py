from __future__ import annotations

import re
from typing import Optional

from ..azure.web_linker import AzureWebLinker
from ..graph import schema
from ..graph.job_state import JobState
from ..graph.model import Entity, Relationship, RelationshipClass, create_direct_relationship
from ..graph.resource_ids import RESOURCE_GROUP_MATCHER, find_or_build_resource_entity
from .common import Record, create_resource_entity, nested

_RESOURCE_GROUP_ID = re.compile(RESOURCE_GROUP_MATCHER, re.IGNORECASE)


def create_resource_group_entity(web_linker: AzureWebLinker, data: Record) -> Entity:
    return create_resource_entity(
        web_linker,
        data,
        schema.RESOURCE_GROUP,
        {
            "managedBy": data.get("managed_by"),
            "provisioningState": nested(data, "properties", "provisioning_state"),
        },
        what="resource group",
    )


def resource_group_id(resource_id: str) -> Optional[str]:
    match = _RESOURCE_GROUP_ID.search(resource_id)
    return match.group(0) if match else None


def create_resource_group_resource_relationship(job_state: JobState, resource: Entity) -> Optional[Relationship]:
    """
    resource group HAS resource. The group endpoint is looked up in job state by
    the id prefix of the resource; when it is not there a placeholder stands in.
    Resources outside a resource group produce no relationship.
    """
    group_id = resource_group_id(resource["_key"])
    if group_id is None:
        return None
    group = find_or_build_resource_entity(job_state, group_id, type="Microsoft.Resources/resourceGroups")
    return create_direct_relationship(RelationshipClass.HAS, group, resource)
