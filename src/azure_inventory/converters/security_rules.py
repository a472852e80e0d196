from __future__ import annotations

import ipaddress
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..graph import schema
from ..graph.model import (
    Entity,
    Relationship,
    RelationshipClass,
    RelationshipDirection,
    create_direct_relationship,
    create_mapped_relationship,
    generate_relationship_type,
)
from .common import Record, require_id
from .network import INTERNET_PREFIXES

RULE_KEY_PREFIX = schema.SECURITY_GROUP_RULE_RELATIONSHIP_TYPE
INTERNET_FILTER_KEYS = [["_key"]]
SERVICE_FILTER_KEYS = [["_class", "_type", "displayName"]]
IP_RANGE_FILTER_KEYS = [["_type", "CIDR"]]
ALL_PORTS = "*"

IpNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


def parse_port_range(port_range: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """
    "*" -> (0, 65535), "80-443" -> (80, 443), "22" -> (22, 22).
    Anything unparseable yields (None, None).
    """
    if port_range is None:
        return None, None
    if port_range == ALL_PORTS:
        return 0, 65535
    try:
        if "-" in port_range:
            low, high = port_range.split("-", 1)
            return int(low), int(high)
        port = int(port_range)
    except ValueError:
        return None, None
    return port, port


def _prefixes(rule: Record, side: str) -> List[str]:
    out: List[str] = []
    single = rule.get(f"{side}_address_prefix")
    if single:
        out.append(single)
    for prefix in rule.get(f"{side}_address_prefixes") or []:
        if prefix and prefix not in out:
            out.append(prefix)
    return out


def _port_ranges(rule: Record) -> List[str]:
    single = rule.get("destination_port_range")
    if single:
        return [single]
    ranges = [r for r in rule.get("destination_port_ranges") or [] if r]
    return ranges or [ALL_PORTS]


def _rule_class(rule: Record) -> RelationshipClass:
    return RelationshipClass.ALLOWS if rule.get("access") == "Allow" else RelationshipClass.DENIES


def rule_properties(rule: Record, relationship_class: RelationshipClass, port_range: str) -> Dict[str, Any]:
    inbound = rule.get("direction") == "Inbound"
    from_port, to_port = parse_port_range(port_range)
    protocol = rule.get("protocol")
    return {
        "id": rule.get("id"),
        "name": rule.get("name"),
        "type": rule.get("type"),
        "etag": rule.get("etag"),
        "displayName": relationship_class.value,
        "access": rule.get("access"),
        "description": rule.get("description"),
        "direction": rule.get("direction"),
        "priority": rule.get("priority"),
        "ruleNumber": rule.get("priority"),
        "protocol": protocol,
        "ipProtocol": protocol.lower() if isinstance(protocol, str) else None,
        "provisioningState": rule.get("provisioning_state"),
        "sourceAddressPrefix": rule.get("source_address_prefix"),
        "sourceAddressPrefixes": list(rule.get("source_address_prefixes") or []),
        "sourcePortRange": rule.get("source_port_range"),
        "destinationAddressPrefix": rule.get("destination_address_prefix"),
        "destinationAddressPrefixes": list(rule.get("destination_address_prefixes") or []),
        "destinationPortRange": rule.get("destination_port_range"),
        "portRange": port_range,
        "fromPort": from_port,
        "toPort": to_port,
        "inbound": inbound,
        "ingress": inbound,
        "outbound": not inbound,
        "egress": not inbound,
    }


def _parse_network(prefix: str) -> Optional[IpNetwork]:
    try:
        return ipaddress.ip_network(prefix, strict=False)
    except ValueError:
        return None


def _ip_range_target(network: IpNetwork, prefix: str) -> Entity:
    single_host = network.num_addresses == 1
    return {
        "_type": "ip_address" if single_host else "ip_range",
        "_class": "Host" if single_host else "Network",
        "CIDR": str(network),
        "displayName": prefix,
        "public": network.is_global,
    }


def _subnets_with_cidr(subnets: Sequence[Entity], network: IpNetwork) -> List[Entity]:
    matches: List[Entity] = []
    for subnet in subnets:
        subnet_network = _parse_network(subnet.get("CIDR") or "")
        if subnet_network is not None and subnet_network == network:
            matches.append(subnet)
    return matches


def create_security_group_rule_relationships(
    security_group: Entity, rules: Sequence[Record], subnets: Sequence[Entity]
) -> List[Relationship]:
    """
    One relationship per (rule, address prefix, port range).

    Inbound rules look at source prefixes and point from the prefix to the
    security group (REVERSE when mapped); outbound rules look at destination
    prefixes and point from the security group outward (FORWARD).
    A prefix equal to an ingested subnet's CIDR links that subnet directly;
    the internet, service tags and other CIDRs become mapped targets.
    """
    relationships: List[Relationship] = []
    seen: set = set()
    for rule in rules:
        rule_id = require_id(rule, "security rule")
        inbound = rule.get("direction") == "Inbound"
        direction = RelationshipDirection.REVERSE if inbound else RelationshipDirection.FORWARD
        rel_class = _rule_class(rule)
        prefixes = _prefixes(rule, "source" if inbound else "destination")
        for port_range in _port_ranges(rule):
            key_base = f"{RULE_KEY_PREFIX}:{rule_id}:{port_range}"
            properties = rule_properties(rule, rel_class, port_range)
            for prefix in prefixes:
                for rel in _relationships_for_prefix(
                    security_group, prefix, key_base, rel_class, direction, inbound, properties, subnets
                ):
                    if rel["_key"] in seen:
                        continue
                    seen.add(rel["_key"])
                    relationships.append(rel)
    return relationships


def _relationships_for_prefix(
    security_group: Entity,
    prefix: str,
    key_base: str,
    rel_class: RelationshipClass,
    direction: RelationshipDirection,
    inbound: bool,
    properties: Dict[str, Any],
    subnets: Sequence[Entity],
) -> List[Relationship]:
    sg_key = security_group["_key"]
    if prefix in INTERNET_PREFIXES:
        return [
            create_mapped_relationship(
                rel_class,
                sg_key,
                schema.INTERNET_TARGET_ENTITY,
                INTERNET_FILTER_KEYS,
                key=f"{key_base}:internet",
                relationship_type=RULE_KEY_PREFIX,
                direction=direction,
                properties=properties,
                skip_target_creation=False,
            )
        ]

    network = _parse_network(prefix)
    if network is None:
        tag_type = schema.SERVICE_TAG_TYPES.get(prefix, schema.DEFAULT_SERVICE_TAG_TYPE)
        return [
            create_mapped_relationship(
                rel_class,
                sg_key,
                {"_class": "Service", "_type": tag_type, "displayName": prefix},
                SERVICE_FILTER_KEYS,
                key=f"{key_base}:Service:{tag_type}:{prefix}",
                relationship_type=RULE_KEY_PREFIX,
                direction=direction,
                properties=properties,
                skip_target_creation=False,
            )
        ]

    matched = _subnets_with_cidr(subnets, network)
    if matched:
        out: List[Relationship] = []
        for subnet in matched:
            source, target = (subnet, security_group) if inbound else (security_group, subnet)
            out.append(
                create_direct_relationship(
                    rel_class,
                    source,
                    target,
                    key=f"{key_base}:{subnet['_key']}",
                    relationship_type=generate_relationship_type(rel_class.value, source["_type"], target["_type"]),
                    properties=properties,
                )
            )
        return out

    return [
        create_mapped_relationship(
            rel_class,
            sg_key,
            _ip_range_target(network, prefix),
            IP_RANGE_FILTER_KEYS,
            key=f"{key_base}:{prefix}",
            relationship_type=RULE_KEY_PREFIX,
            direction=direction,
            properties=properties,
            skip_target_creation=False,
        )
    ]
