from __future__ import annotations

import re

from azure_inventory.graph import schema
from azure_inventory.graph.job_state import InMemoryJobState
from azure_inventory.graph.model import is_placeholder_entity
from azure_inventory.graph.resource_ids import (
    DEFAULT_RESOURCE_TYPE,
    RESOURCE_ID_MATCHER_DEPENDS_ON,
    RESOURCE_ID_MATCHER_ENTITY_TYPES,
    RESOURCE_ID_TYPES_MAP,
    ResolutionStatus,
    ResourceIdMap,
    find_or_build_resource_entity,
    get_type_for_azure_type,
    get_type_for_resource_id,
    resolve_resource_id,
)

RG = "/subscriptions/sub-1/resourceGroups/rg-1"
NIC_ID = f"{RG}/providers/Microsoft.Network/networkInterfaces/nic-1"
SUBNET_ID = f"{RG}/providers/Microsoft.Network/virtualNetworks/vnet-1/subnets/default"
VNET_ID = f"{RG}/providers/Microsoft.Network/virtualNetworks/vnet-1"


def test_get_type_for_resource_id_matches_known_providers() -> None:
    assert get_type_for_resource_id(NIC_ID) == schema.NETWORK_INTERFACE["_type"]
    assert get_type_for_resource_id(VNET_ID) == schema.VIRTUAL_NETWORK["_type"]
    assert get_type_for_resource_id(RG) == schema.RESOURCE_GROUP["_type"]


def test_child_resource_id_does_not_match_parent_rule() -> None:
    assert get_type_for_resource_id(SUBNET_ID) == schema.SUBNET["_type"]


def test_get_type_for_resource_id_ignores_case() -> None:
    lowered = NIC_ID.lower()
    assert get_type_for_resource_id(lowered) == schema.NETWORK_INTERFACE["_type"]
    assert "resourcegroups" in lowered
    upper_group = NIC_ID.replace("resourceGroups", "RESOURCEGROUPS")
    assert get_type_for_resource_id(upper_group) == schema.NETWORK_INTERFACE["_type"]


def test_get_type_for_resource_id_returns_none_when_nothing_matches() -> None:
    assert get_type_for_resource_id("/providers/Microsoft.Unknown/things/x") is None


def test_get_type_for_azure_type() -> None:
    assert get_type_for_azure_type("Microsoft.Compute/virtualMachines") == schema.VIRTUAL_MACHINE["_type"]
    assert get_type_for_azure_type("Microsoft.Nope/nothing") is None
    assert get_type_for_azure_type(None) is None


def test_first_matching_rule_wins() -> None:
    table = [
        ResourceIdMap(re.compile("/things/[^/]+$"), "first"),
        ResourceIdMap(re.compile("/things/special$"), "second"),
    ]
    assert get_type_for_resource_id("/x/things/special", table) == "first"


def test_matcher_tables_follow_rule_order() -> None:
    assert RESOURCE_ID_MATCHER_ENTITY_TYPES == [entry.type for entry in RESOURCE_ID_TYPES_MAP]
    assert schema.STEP_RM_NETWORK_INTERFACES in RESOURCE_ID_MATCHER_DEPENDS_ON


def test_resolver_returns_full_entity_when_ingested() -> None:
    job_state = InMemoryJobState()
    nic = {"_key": NIC_ID, "_type": schema.NETWORK_INTERFACE["_type"], "_class": "NetworkInterface"}
    job_state.add_entity(nic)

    resolution = resolve_resource_id(job_state, NIC_ID)

    assert resolution.status is ResolutionStatus.RESOLVED
    assert resolution.is_resolved
    assert resolution.entity is nic
    assert not is_placeholder_entity(resolution.entity)


def test_resolver_builds_two_field_placeholder_when_missing() -> None:
    entity = find_or_build_resource_entity(InMemoryJobState(), NIC_ID)

    assert entity == {"_type": schema.NETWORK_INTERFACE["_type"], "_key": NIC_ID}
    assert is_placeholder_entity(entity)


def test_resolver_prefers_azure_type_hint() -> None:
    resolution = resolve_resource_id(InMemoryJobState(), RG, type="Microsoft.Resources/resourceGroups")
    assert resolution.status is ResolutionStatus.PLACEHOLDER
    assert resolution.entity["_type"] == schema.RESOURCE_GROUP["_type"]


class _ReadOnlyJobState(InMemoryJobState):
    def set_data(self, key, value):
        raise AssertionError(f"resolver wrote job data: {key}")


def test_resolver_falls_back_to_unknown_type_without_writing_state() -> None:
    job_state = _ReadOnlyJobState()
    unknown_id = "/subscriptions/sub-1/providers/Microsoft.Unknown/things/x"

    first = resolve_resource_id(job_state, unknown_id)
    second = resolve_resource_id(job_state, unknown_id)

    assert first.status is ResolutionStatus.UNRECOGNIZED
    assert first.entity == {"_type": DEFAULT_RESOURCE_TYPE, "_key": unknown_id}
    assert DEFAULT_RESOURCE_TYPE == "azure_unknown_resource_type"
    assert second.status is ResolutionStatus.UNRECOGNIZED
    assert job_state.entity_count == 0
    for _ in range(2):
        assert find_or_build_resource_entity(job_state, "/not/an/arm/id")["_type"] == DEFAULT_RESOURCE_TYPE
