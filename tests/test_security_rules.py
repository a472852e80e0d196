from __future__ import annotations

import pytest

from azure_inventory.converters.security_rules import (
    create_security_group_rule_relationships,
    parse_port_range,
)

RG = "/subscriptions/sub-1/resourceGroups/rg-1"
NSG_ID = f"{RG}/providers/Microsoft.Network/networkSecurityGroups/nsg-1"
VNET_ID = f"{RG}/providers/Microsoft.Network/virtualNetworks/vnet-1"
RULE_ID = f"{NSG_ID}/securityRules/allow-app"

SECURITY_GROUP = {"_key": NSG_ID, "_type": "azure_security_group", "_class": "Firewall"}
SUBNET_A = {"_key": f"{VNET_ID}/subnets/a", "_type": "azure_subnet", "_class": "Network", "CIDR": "10.0.1.0/24"}
SUBNET_B = {"_key": f"{VNET_ID}/subnets/b", "_type": "azure_subnet", "_class": "Network", "CIDR": "10.0.2.0/24"}


def _rule(**overrides):
    rule = {
        "id": RULE_ID,
        "name": "allow-app",
        "direction": "Inbound",
        "access": "Allow",
        "protocol": "Tcp",
        "priority": 200,
        "destination_port_range": "443",
    }
    rule.update(overrides)
    return rule


@pytest.mark.parametrize(
    "value, expected",
    [("*", (0, 65535)), ("80-443", (80, 443)), ("22", (22, 22)), ("http", (None, None)), (None, (None, None))],
)
def test_parse_port_range(value, expected) -> None:
    assert parse_port_range(value) == expected


def test_inbound_internet_rule_is_mapped_reverse() -> None:
    (relationship,) = create_security_group_rule_relationships(
        SECURITY_GROUP, [_rule(source_address_prefix="Internet")], []
    )

    assert relationship["_key"] == f"azure_security_group_rule:{RULE_ID}:443:internet"
    assert relationship["_type"] == "azure_security_group_rule"
    assert relationship["_class"] == "ALLOWS"
    assert relationship["_mapping"]["relationshipDirection"] == "REVERSE"
    assert relationship["_mapping"]["sourceEntityKey"] == NSG_ID
    assert relationship["_mapping"]["targetEntity"]["_key"] == "global:internet"
    assert relationship["_mapping"]["targetFilterKeys"] == [["_key"]]
    assert relationship["_mapping"]["skipTargetCreation"] is False
    assert relationship["inbound"] is True
    assert relationship["fromPort"] == 443
    assert relationship["toPort"] == 443


def test_outbound_service_tag_rule_is_mapped_forward() -> None:
    (relationship,) = create_security_group_rule_relationships(
        SECURITY_GROUP,
        [_rule(direction="Outbound", access="Deny", destination_address_prefix="AzureLoadBalancer")],
        [],
    )

    target = relationship["_mapping"]["targetEntity"]
    assert relationship["_class"] == "DENIES"
    assert relationship["_mapping"]["relationshipDirection"] == "FORWARD"
    assert relationship["_key"].endswith(":443:Service:azure_load_balancer:AzureLoadBalancer")
    assert target == {"_class": "Service", "_type": "azure_load_balancer", "displayName": "AzureLoadBalancer"}


def test_unknown_service_tag_uses_generic_type() -> None:
    (relationship,) = create_security_group_rule_relationships(
        SECURITY_GROUP, [_rule(source_address_prefix="Storage.EastUS")], []
    )
    assert relationship["_mapping"]["targetEntity"]["_type"] == "azure_service_tag"


def test_inbound_rule_from_subnet_cidr_links_subnet_directly() -> None:
    (relationship,) = create_security_group_rule_relationships(
        SECURITY_GROUP, [_rule(source_address_prefix="10.0.1.0/24")], [SUBNET_A, SUBNET_B]
    )

    assert "_mapping" not in relationship
    assert relationship["_fromEntityKey"] == SUBNET_A["_key"]
    assert relationship["_toEntityKey"] == NSG_ID
    assert relationship["_key"] == f"azure_security_group_rule:{RULE_ID}:443:{SUBNET_A['_key']}"


def test_same_rule_on_two_subnets_produces_distinct_keys() -> None:
    relationships = create_security_group_rule_relationships(
        SECURITY_GROUP,
        [_rule(direction="Outbound", destination_address_prefixes=["10.0.1.0/24", "10.0.2.0/24"])],
        [SUBNET_A, SUBNET_B],
    )

    keys = [r["_key"] for r in relationships]
    assert len(keys) == 2
    assert len(set(keys)) == 2
    assert [r["_toEntityKey"] for r in relationships] == [SUBNET_A["_key"], SUBNET_B["_key"]]
    assert all(r["_fromEntityKey"] == NSG_ID for r in relationships)


def test_other_cidr_maps_to_ip_range_target() -> None:
    relationships = create_security_group_rule_relationships(
        SECURITY_GROUP, [_rule(source_address_prefixes=["192.168.0.0/16", "52.1.2.3"])], []
    )

    targets = [r["_mapping"]["targetEntity"] for r in relationships]
    assert targets[0]["_type"] == "ip_range"
    assert targets[0]["CIDR"] == "192.168.0.0/16"
    assert targets[0]["public"] is False
    assert targets[1]["_type"] == "ip_address"
    assert targets[1]["CIDR"] == "52.1.2.3/32"
    assert relationships[0]["_mapping"]["targetFilterKeys"] == [["_type", "CIDR"]]
    assert relationships[0]["_mapping"]["skipTargetCreation"] is False


def test_one_relationship_per_port_range() -> None:
    relationships = create_security_group_rule_relationships(
        SECURITY_GROUP,
        [_rule(destination_port_range=None, destination_port_ranges=["80", "443"], source_address_prefix="*")],
        [],
    )
    assert [r["portRange"] for r in relationships] == ["80", "443"]
    assert len({r["_key"] for r in relationships}) == 2


def test_conversion_is_deterministic() -> None:
    rules = [_rule(source_address_prefix="Internet"), _rule(id=f"{NSG_ID}/securityRules/other", source_address_prefix="VirtualNetwork")]
    first = create_security_group_rule_relationships(SECURITY_GROUP, rules, [SUBNET_A])
    second = create_security_group_rule_relationships(SECURITY_GROUP, rules, [SUBNET_A])
    assert [r["_key"] for r in first] == [r["_key"] for r in second]
