from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..azure.web_linker import AzureWebLinker
from ..graph import schema
from ..graph.job_state import JobState
from ..graph.model import Entity, Relationship, RelationshipClass, create_direct_relationship
from ..graph.resource_ids import find_or_build_resource_entity
from .common import Record, compact_list, create_resource_entity, nested, require_id

INTERNET_PREFIXES = frozenset({"*", "Internet", "0.0.0.0/0", "::/0"})

# id -> address, built from the public IP addresses ingested earlier in the run
PublicIpLookup = Mapping[str, Optional[str]]


def _first_address_prefix(data: Record) -> Optional[str]:
    prefixes = nested(data, "address_space", "address_prefixes") or []
    return prefixes[0] if prefixes else None


def _display_with_cidr(name: Optional[str], cidr: Optional[str]) -> Optional[str]:
    if name and cidr:
        return f"{name} ({cidr})"
    return name


def subnet_address_prefixes(subnet: Record) -> List[str]:
    prefixes: List[str] = []
    if subnet.get("address_prefix"):
        prefixes.append(subnet["address_prefix"])
    for prefix in subnet.get("address_prefixes") or []:
        if prefix and prefix not in prefixes:
            prefixes.append(prefix)
    return prefixes


def create_virtual_network_entity(web_linker: AzureWebLinker, data: Record) -> Entity:
    cidr = _first_address_prefix(data)
    return create_resource_entity(
        web_linker,
        data,
        schema.VIRTUAL_NETWORK,
        {
            "CIDR": cidr,
            "addressPrefixes": list(nested(data, "address_space", "address_prefixes") or []),
            "displayName": _display_with_cidr(data.get("name"), cidr),
            "internal": True,
            "public": False,
            "provisioningState": data.get("provisioning_state"),
        },
        what="virtual network",
    )


def create_subnet_entity(web_linker: AzureWebLinker, vnet: Record, data: Record) -> Entity:
    prefixes = subnet_address_prefixes(data)
    cidr = prefixes[0] if prefixes else None
    return create_resource_entity(
        web_linker,
        data,
        schema.SUBNET,
        {
            "CIDR": cidr,
            "displayName": _display_with_cidr(data.get("name"), cidr),
            "region": vnet.get("location"),
            "environment": (vnet.get("tags") or {}).get("environment"),
            "internal": True,
            "public": False,
            "securityGroupId": nested(data, "network_security_group", "id"),
            "provisioningState": data.get("provisioning_state"),
        },
        what="subnet",
    )


def _rule_targets_internet(rule: Record) -> bool:
    prefixes = [rule.get("source_address_prefix")] + list(rule.get("source_address_prefixes") or [])
    return any(p in INTERNET_PREFIXES for p in prefixes if p)


def is_wide_open(security_group: Record) -> bool:
    """
    True when an inbound Allow rule accepts any protocol on any port from anywhere.
    """
    for rule in security_group.get("security_rules") or []:
        if rule.get("direction") != "Inbound" or rule.get("access") != "Allow":
            continue
        if rule.get("protocol") != "*" or rule.get("destination_port_range") != "*":
            continue
        if _rule_targets_internet(rule):
            return True
    return False


def create_network_security_group_entity(web_linker: AzureWebLinker, data: Record) -> Entity:
    return create_resource_entity(
        web_linker,
        data,
        schema.SECURITY_GROUP,
        {
            "category": ["network", "host"],
            "isWideOpen": is_wide_open(data),
            "provisioningState": data.get("provisioning_state"),
        },
        what="network security group",
    )


def _public_ips(configurations: Iterable[Record], lookup: PublicIpLookup) -> List[str]:
    addresses: List[str] = []
    for config in configurations:
        ip_id = nested(config, "public_ip_address", "id")
        address = nested(config, "public_ip_address", "ip_address")
        if address is None and ip_id:
            address = lookup.get(ip_id)
        if address:
            addresses.append(address)
    return addresses


def create_network_interface_entity(
    web_linker: AzureWebLinker, data: Record, public_ip_lookup: Optional[PublicIpLookup] = None
) -> Entity:
    configurations = data.get("ip_configurations") or []
    private_ips = compact_list(c.get("private_ip_address") for c in configurations)
    public_ips = _public_ips(configurations, public_ip_lookup or {})
    return create_resource_entity(
        web_linker,
        data,
        schema.NETWORK_INTERFACE,
        {
            "ipForwarding": data.get("enable_ip_forwarding"),
            "macAddress": data.get("mac_address"),
            "privateIp": private_ips,
            "privateIpAddress": private_ips,
            "publicIp": public_ips,
            "publicIpAddress": public_ips,
            "resourceGuid": data.get("resource_guid"),
            "securityGroupId": nested(data, "network_security_group", "id"),
            "virtualMachineId": nested(data, "virtual_machine", "id"),
        },
        what="network interface",
    )


def create_public_ip_address_entity(web_linker: AzureWebLinker, data: Record) -> Entity:
    return create_resource_entity(
        web_linker,
        data,
        schema.PUBLIC_IP_ADDRESS,
        {
            "public": True,
            "publicIp": data.get("ip_address"),
            "publicIpAddress": data.get("ip_address"),
            "allocationMethod": data.get("public_ip_allocation_method"),
            "resourceGuid": data.get("resource_guid"),
            "sku": nested(data, "sku", "name"),
        },
        what="public IP address",
    )


def create_load_balancer_entity(
    web_linker: AzureWebLinker, data: Record, public_ip_lookup: Optional[PublicIpLookup] = None
) -> Entity:
    frontends = data.get("frontend_ip_configurations") or []
    public_ips = _public_ips(frontends, public_ip_lookup or {})
    has_public_frontend = any(nested(f, "public_ip_address", "id") for f in frontends)
    return create_resource_entity(
        web_linker,
        data,
        schema.LOAD_BALANCER,
        {
            "category": ["network"],
            "function": ["load-balancing"],
            "resourceGuid": data.get("resource_guid"),
            "publicIp": public_ips,
            "privateIp": compact_list(f.get("private_ip_address") for f in frontends),
            "public": bool(public_ips) or has_public_frontend,
        },
        what="load balancer",
    )


def create_azure_firewall_entity(web_linker: AzureWebLinker, data: Record) -> Entity:
    return create_resource_entity(
        web_linker,
        data,
        schema.AZURE_FIREWALL,
        {
            "category": ["network"],
            "provisioningState": data.get("provisioning_state"),
            "threatIntelMode": data.get("threat_intel_mode"),
        },
        what="azure firewall",
    )


def create_virtual_network_subnet_relationship(vnet: Entity, subnet: Entity) -> Relationship:
    return create_direct_relationship(
        RelationshipClass.CONTAINS,
        vnet,
        subnet,
        relationship_type=schema.VIRTUAL_NETWORK_CONTAINS_SUBNET["_type"],
    )


def create_security_group_relationships(job_state: JobState, security_group: Record) -> List[Relationship]:
    """
    security group PROTECTS each subnet and network interface it is attached to.
    Endpoints not yet ingested are referenced through placeholders.
    """
    sg_id = require_id(security_group, "network security group")
    sg_entity = find_or_build_resource_entity(job_state, sg_id)
    relationships: List[Relationship] = []
    attachments: List[Dict[str, Any]] = [
        {"refs": security_group.get("subnets") or [], "meta": schema.SECURITY_GROUP_PROTECTS_SUBNET},
        {"refs": security_group.get("network_interfaces") or [], "meta": schema.SECURITY_GROUP_PROTECTS_NETWORK_INTERFACE},
    ]
    for attachment in attachments:
        for ref in attachment["refs"]:
            target_id = ref.get("id")
            if not target_id:
                continue
            target = find_or_build_resource_entity(job_state, target_id)
            relationships.append(
                create_direct_relationship(
                    RelationshipClass.PROTECTS,
                    sg_entity,
                    target,
                    relationship_type=attachment["meta"]["_type"],
                )
            )
    return relationships
