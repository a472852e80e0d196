from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from . import schema
from .job_state import JobState
from .model import Entity, PlaceholderEntity

RESOURCE_GROUP_MATCHER = "/subscriptions/[^/]+/resourceGroups/[^/]+"
EOL_MATCHER = "$"
DEFAULT_RESOURCE_TYPE = schema.DEFAULT_RESOURCE_TYPE


@dataclass(frozen=True)
class ResourceIdMap:
    """
    One rule of the resource-id table: a pattern (and optionally the ARM type
    string) correlated to a graph _type and the steps that ingest that type.
    """

    resource_id_matcher: "re.Pattern[str]"
    type: str
    depends_on: List[str] = field(default_factory=list)
    azure_type: Optional[str] = None


def _provider_matcher(path: str) -> "re.Pattern[str]":
    # ARM ids come back with inconsistent casing (diagnostic settings are all lowercase).
    return re.compile(RESOURCE_GROUP_MATCHER + path + EOL_MATCHER, re.IGNORECASE)


# Ordered: first match wins. Every pattern is anchored at the end of the id so a
# child resource id never matches its parent's rule.
RESOURCE_ID_TYPES_MAP: List[ResourceIdMap] = [
    ResourceIdMap(
        _provider_matcher("/providers/Microsoft.Network/networkInterfaces/[^/]+"),
        schema.NETWORK_INTERFACE["_type"],
        [schema.STEP_RM_NETWORK_INTERFACES],
        "Microsoft.Network/networkInterfaces",
    ),
    ResourceIdMap(
        _provider_matcher("/providers/Microsoft.Network/networkSecurityGroups/[^/]+"),
        schema.SECURITY_GROUP["_type"],
        [schema.STEP_RM_NETWORK_SECURITY_GROUPS],
        "Microsoft.Network/networkSecurityGroups",
    ),
    ResourceIdMap(
        _provider_matcher("/providers/Microsoft.Network/publicIPAddresses/[^/]+"),
        schema.PUBLIC_IP_ADDRESS["_type"],
        [schema.STEP_RM_NETWORK_PUBLIC_IP_ADDRESSES],
        "Microsoft.Network/publicIPAddresses",
    ),
    ResourceIdMap(
        _provider_matcher("/providers/Microsoft.Network/virtualNetworks/[^/]+/subnets/[^/]+"),
        schema.SUBNET["_type"],
        [schema.STEP_RM_NETWORK_VIRTUAL_NETWORKS],
        "Microsoft.Network/virtualNetworks/subnets",
    ),
    ResourceIdMap(
        _provider_matcher("/providers/Microsoft.Network/virtualNetworks/[^/]+"),
        schema.VIRTUAL_NETWORK["_type"],
        [schema.STEP_RM_NETWORK_VIRTUAL_NETWORKS],
        "Microsoft.Network/virtualNetworks",
    ),
    ResourceIdMap(
        _provider_matcher("/providers/Microsoft.Network/loadBalancers/[^/]+"),
        schema.LOAD_BALANCER["_type"],
        [schema.STEP_RM_NETWORK_LOAD_BALANCERS],
        "Microsoft.Network/loadBalancers",
    ),
    ResourceIdMap(
        _provider_matcher("/providers/Microsoft.Network/azureFirewalls/[^/]+"),
        schema.AZURE_FIREWALL["_type"],
        [schema.STEP_RM_NETWORK_FIREWALLS],
        "Microsoft.Network/azureFirewalls",
    ),
    ResourceIdMap(
        _provider_matcher("/providers/Microsoft.Compute/virtualMachines/[^/]+"),
        schema.VIRTUAL_MACHINE["_type"],
        [schema.STEP_RM_COMPUTE_VIRTUAL_MACHINES],
        "Microsoft.Compute/virtualMachines",
    ),
    ResourceIdMap(
        _provider_matcher("/providers/Microsoft.Storage/storageAccounts/[^/]+"),
        schema.STORAGE_ACCOUNT["_type"],
        [schema.STEP_RM_STORAGE_ACCOUNTS],
        "Microsoft.Storage/storageAccounts",
    ),
    ResourceIdMap(
        _provider_matcher("/providers/Microsoft.DBforPostgreSQL/servers/[^/]+"),
        schema.POSTGRESQL_SERVER["_type"],
        [schema.STEP_RM_DATABASE_POSTGRESQL_DATABASES],
        "Microsoft.DBforPostgreSQL/servers",
    ),
    ResourceIdMap(
        _provider_matcher(""),
        schema.RESOURCE_GROUP["_type"],
        [schema.STEP_RM_RESOURCES_RESOURCE_GROUPS],
        "Microsoft.Resources/resourceGroups",
    ),
]


class ResolutionStatus(str, Enum):
    RESOLVED = "RESOLVED"
    PLACEHOLDER = "PLACEHOLDER"
    UNRECOGNIZED = "UNRECOGNIZED"


@dataclass(frozen=True)
class ResourceResolution:
    status: ResolutionStatus
    entity: Entity
    resource_id: str

    @property
    def is_resolved(self) -> bool:
        return self.status is ResolutionStatus.RESOLVED


def make_matcher_depends_on(resource_id_map: Sequence[ResourceIdMap]) -> List[str]:
    out: List[str] = []
    for entry in resource_id_map:
        out.extend(entry.depends_on)
    return out


def make_matcher_entity_types(resource_id_map: Sequence[ResourceIdMap]) -> List[str]:
    return [entry.type for entry in resource_id_map]


RESOURCE_ID_MATCHER_DEPENDS_ON = make_matcher_depends_on(RESOURCE_ID_TYPES_MAP)
RESOURCE_ID_MATCHER_ENTITY_TYPES = make_matcher_entity_types(RESOURCE_ID_TYPES_MAP)


def get_type_for_resource_id(
    resource_id: str, resource_id_map: Optional[Sequence[ResourceIdMap]] = None
) -> Optional[str]:
    for entry in resource_id_map if resource_id_map is not None else RESOURCE_ID_TYPES_MAP:
        if entry.resource_id_matcher.search(resource_id):
            return entry.type
    return None


def get_type_for_azure_type(
    azure_type: Optional[str], resource_id_map: Optional[Sequence[ResourceIdMap]] = None
) -> Optional[str]:
    if not azure_type:
        return None
    for entry in resource_id_map if resource_id_map is not None else RESOURCE_ID_TYPES_MAP:
        if entry.azure_type is not None and entry.azure_type == azure_type:
            return entry.type
    return None


def resolve_resource_id(
    job_state: JobState,
    resource_id: str,
    type: Optional[str] = None,
    resource_id_map: Optional[Sequence[ResourceIdMap]] = None,
) -> ResourceResolution:
    """
    Resolve a resource id to a relationship endpoint.

    RESOLVED: the entity is already in job state and is returned in full.
    PLACEHOLDER: not yet ingested; {_type, _key} with _type taken from the type
      hint or the first matching resource-id rule.
    UNRECOGNIZED: not ingested and no rule matched; _type is the unknown marker.
    """
    found = job_state.find_entity(resource_id)
    if found is not None:
        return ResourceResolution(ResolutionStatus.RESOLVED, found, resource_id)

    resolved_type = get_type_for_azure_type(type, resource_id_map) or get_type_for_resource_id(
        resource_id, resource_id_map
    )
    if resolved_type is None:
        placeholder: PlaceholderEntity = {"_type": DEFAULT_RESOURCE_TYPE, "_key": resource_id}
        return ResourceResolution(ResolutionStatus.UNRECOGNIZED, dict(placeholder), resource_id)
    placeholder = {"_type": resolved_type, "_key": resource_id}
    return ResourceResolution(ResolutionStatus.PLACEHOLDER, dict(placeholder), resource_id)


def find_or_build_resource_entity(
    job_state: JobState,
    resource_id: str,
    type: Optional[str] = None,
    resource_id_map: Optional[Sequence[ResourceIdMap]] = None,
) -> Entity:
    """
    Return the ingested entity for resource_id, or a {_type, _key} placeholder.
    """
    return resolve_resource_id(job_state, resource_id, type=type, resource_id_map=resource_id_map).entity
