from __future__ import annotations

from typing import Dict, List, Optional

from ..azure.resource_manager import (
    iterate_azure_firewalls,
    iterate_load_balancers,
    iterate_network_interfaces,
    iterate_network_security_groups,
    iterate_public_ip_addresses,
    iterate_virtual_networks,
)
from ..converters.common import nested
from ..converters.network import (
    create_azure_firewall_entity,
    create_load_balancer_entity,
    create_network_interface_entity,
    create_network_security_group_entity,
    create_public_ip_address_entity,
    create_security_group_relationships,
    create_subnet_entity,
    create_virtual_network_entity,
    create_virtual_network_subnet_relationship,
)
from ..converters.security_rules import create_security_group_rule_relationships
from ..graph import schema
from ..graph.model import Entity
from ..graph.resource_ids import find_or_build_resource_entity
from .base import Step, StepContext
from .monitor import DIAGNOSTIC_SETTINGS_ENTITIES, DIAGNOSTIC_SETTINGS_RELATIONSHIPS, ingest_diagnostic_settings
from .resources import publish_resource_group_relationship, resource_group_relationship_type

RM_BASE_DEPENDS_ON = [schema.STEP_AD_ACCOUNT, schema.STEP_RM_RESOURCES_RESOURCE_GROUPS]
# job_state.set_data key: network interface id -> ids of its public IP addresses
NIC_PUBLIC_IP_IDS_KEY = "NETWORK_INTERFACE_PUBLIC_IP_IDS"


def public_ip_lookup(ctx: StepContext) -> Dict[str, Optional[str]]:
    return {
        entity["_key"]: entity.get("publicIp")
        for entity in ctx.job_state.iterate_entities(schema.PUBLIC_IP_ADDRESS["_type"])
    }


def _publish_resource(ctx: StepContext, step_id: str, entity: Entity) -> bool:
    if ctx.add_entity(entity) is None:
        return False
    publish_resource_group_relationship(ctx, entity)
    ingest_diagnostic_settings(ctx, step_id, entity)
    return True


def fetch_public_ip_addresses(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_NETWORK_PUBLIC_IP_ADDRESSES
    for data in iterate_public_ip_addresses(ctx.clients):
        entity = ctx.convert(step_id, create_public_ip_address_entity, ctx.web_linker, data)
        if entity is not None:
            _publish_resource(ctx, step_id, entity)


def fetch_network_interfaces(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_NETWORK_INTERFACES
    lookup = public_ip_lookup(ctx)
    public_ip_ids: Dict[str, List[str]] = {}
    for data in iterate_network_interfaces(ctx.clients):
        entity = ctx.convert(step_id, create_network_interface_entity, ctx.web_linker, data, lookup)
        if entity is None or not _publish_resource(ctx, step_id, entity):
            continue
        public_ip_ids[entity["_key"]] = [
            ip_id
            for ip_id in (nested(c, "public_ip_address", "id") for c in data.get("ip_configurations") or [])
            if ip_id
        ]
    ctx.job_state.set_data(NIC_PUBLIC_IP_IDS_KEY, public_ip_ids)


def fetch_network_security_groups(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_NETWORK_SECURITY_GROUPS
    for data in iterate_network_security_groups(ctx.clients):
        entity = ctx.convert(step_id, create_network_security_group_entity, ctx.web_linker, data)
        if entity is None or not _publish_resource(ctx, step_id, entity):
            continue
        for relationship in create_security_group_relationships(ctx.job_state, data):
            ctx.add_relationship_once(relationship)


def fetch_virtual_networks(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_NETWORK_VIRTUAL_NETWORKS
    for data in iterate_virtual_networks(ctx.clients):
        vnet = ctx.convert(step_id, create_virtual_network_entity, ctx.web_linker, data)
        if vnet is None or not _publish_resource(ctx, step_id, vnet):
            continue
        for subnet_data in data.get("subnets") or []:
            subnet = ctx.convert(step_id, create_subnet_entity, ctx.web_linker, data, subnet_data)
            if subnet is None or ctx.add_entity(subnet) is None:
                continue
            ctx.add_relationship(create_virtual_network_subnet_relationship(vnet, subnet))


def fetch_load_balancers(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_NETWORK_LOAD_BALANCERS
    lookup = public_ip_lookup(ctx)
    for data in iterate_load_balancers(ctx.clients):
        entity = ctx.convert(step_id, create_load_balancer_entity, ctx.web_linker, data, lookup)
        if entity is not None:
            _publish_resource(ctx, step_id, entity)


def fetch_azure_firewalls(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_NETWORK_FIREWALLS
    for data in iterate_azure_firewalls(ctx.clients):
        entity = ctx.convert(step_id, create_azure_firewall_entity, ctx.web_linker, data)
        if entity is not None:
            _publish_resource(ctx, step_id, entity)


def build_security_group_rule_relationships(ctx: StepContext) -> None:
    """
    Rule edges need every subnet of the run, so they are built in their own
    step once virtual networks and security groups are both ingested.
    """
    step_id = schema.STEP_RM_NETWORK_SECURITY_GROUP_RULE_RELATIONSHIPS
    subnets = list(ctx.job_state.iterate_entities(schema.SUBNET["_type"]))
    for data in iterate_network_security_groups(ctx.clients):
        sg_id = data.get("id")
        if not sg_id:
            continue
        security_group = find_or_build_resource_entity(ctx.job_state, sg_id)
        rules = list(data.get("default_security_rules") or []) + list(data.get("security_rules") or [])
        for rule in rules:
            relationships = ctx.convert(
                step_id, create_security_group_rule_relationships, security_group, [rule], subnets
            )
            for relationship in relationships or []:
                ctx.add_relationship_once(relationship)


def _rg(entity_type: str) -> str:
    return resource_group_relationship_type(entity_type)


STEPS: List[Step] = [
    Step(
        id=schema.STEP_RM_NETWORK_PUBLIC_IP_ADDRESSES,
        name="Public IP Addresses",
        entities=[schema.PUBLIC_IP_ADDRESS["_type"]] + DIAGNOSTIC_SETTINGS_ENTITIES,
        relationships=[_rg(schema.PUBLIC_IP_ADDRESS["_type"])] + DIAGNOSTIC_SETTINGS_RELATIONSHIPS,
        depends_on=list(RM_BASE_DEPENDS_ON),
        execute=fetch_public_ip_addresses,
    ),
    Step(
        id=schema.STEP_RM_NETWORK_INTERFACES,
        name="Network Interfaces",
        entities=[schema.NETWORK_INTERFACE["_type"]],
        relationships=[_rg(schema.NETWORK_INTERFACE["_type"])],
        depends_on=RM_BASE_DEPENDS_ON + [schema.STEP_RM_NETWORK_PUBLIC_IP_ADDRESSES],
        execute=fetch_network_interfaces,
    ),
    Step(
        id=schema.STEP_RM_NETWORK_VIRTUAL_NETWORKS,
        name="Virtual Networks",
        entities=[schema.VIRTUAL_NETWORK["_type"], schema.SUBNET["_type"]],
        relationships=[
            _rg(schema.VIRTUAL_NETWORK["_type"]),
            schema.VIRTUAL_NETWORK_CONTAINS_SUBNET["_type"],
        ],
        depends_on=list(RM_BASE_DEPENDS_ON),
        execute=fetch_virtual_networks,
    ),
    Step(
        id=schema.STEP_RM_NETWORK_SECURITY_GROUPS,
        name="Network Security Groups",
        entities=[schema.SECURITY_GROUP["_type"]],
        relationships=[
            _rg(schema.SECURITY_GROUP["_type"]),
            schema.SECURITY_GROUP_PROTECTS_SUBNET["_type"],
            schema.SECURITY_GROUP_PROTECTS_NETWORK_INTERFACE["_type"],
        ],
        depends_on=RM_BASE_DEPENDS_ON
        + [schema.STEP_RM_NETWORK_INTERFACES, schema.STEP_RM_NETWORK_VIRTUAL_NETWORKS],
        execute=fetch_network_security_groups,
    ),
    Step(
        id=schema.STEP_RM_NETWORK_SECURITY_GROUP_RULE_RELATIONSHIPS,
        name="Network Security Group Rule Relationships",
        entities=[],
        relationships=[schema.SECURITY_GROUP_RULE_RELATIONSHIP_TYPE],
        depends_on=[schema.STEP_RM_NETWORK_SECURITY_GROUPS, schema.STEP_RM_NETWORK_VIRTUAL_NETWORKS],
        execute=build_security_group_rule_relationships,
    ),
    Step(
        id=schema.STEP_RM_NETWORK_LOAD_BALANCERS,
        name="Load Balancers",
        entities=[schema.LOAD_BALANCER["_type"]],
        relationships=[_rg(schema.LOAD_BALANCER["_type"])],
        depends_on=RM_BASE_DEPENDS_ON + [schema.STEP_RM_NETWORK_PUBLIC_IP_ADDRESSES],
        execute=fetch_load_balancers,
    ),
    Step(
        id=schema.STEP_RM_NETWORK_FIREWALLS,
        name="Azure Firewalls",
        entities=[schema.AZURE_FIREWALL["_type"]],
        relationships=[_rg(schema.AZURE_FIREWALL["_type"])],
        depends_on=list(RM_BASE_DEPENDS_ON),
        execute=fetch_azure_firewalls,
    ),
]
