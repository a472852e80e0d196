from __future__ import annotations

from typing import List

from ..azure.resource_manager import iterate_virtual_machines
from ..converters.compute import (
    create_virtual_machine_entity,
    create_virtual_machine_network_interface_relationship,
    create_virtual_machine_public_ip_address_relationship,
    network_interface_ids,
)
from ..graph import schema
from .base import Step, StepContext
from .network import NIC_PUBLIC_IP_IDS_KEY, RM_BASE_DEPENDS_ON
from .resources import publish_resource_group_relationship, resource_group_relationship_type


def fetch_virtual_machines(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_COMPUTE_VIRTUAL_MACHINES
    public_ip_ids = ctx.job_state.get_data(NIC_PUBLIC_IP_IDS_KEY) or {}
    for data in iterate_virtual_machines(ctx.clients):
        entity = ctx.convert(step_id, create_virtual_machine_entity, ctx.web_linker, data)
        if entity is None or ctx.add_entity(entity) is None:
            continue
        publish_resource_group_relationship(ctx, entity)

        for nic_id in network_interface_ids(data):
            ctx.add_relationship_once(
                create_virtual_machine_network_interface_relationship(data, {"id": nic_id})
            )
            for ip_id in public_ip_ids.get(nic_id, []):
                ctx.add_relationship_once(
                    create_virtual_machine_public_ip_address_relationship(data, {"id": ip_id})
                )


STEPS: List[Step] = [
    Step(
        id=schema.STEP_RM_COMPUTE_VIRTUAL_MACHINES,
        name="Virtual Machines",
        entities=[schema.VIRTUAL_MACHINE["_type"]],
        relationships=[
            resource_group_relationship_type(schema.VIRTUAL_MACHINE["_type"]),
            schema.VM_USES_NETWORK_INTERFACE_TYPE,
            schema.VM_USES_PUBLIC_IP_TYPE,
        ],
        depends_on=RM_BASE_DEPENDS_ON
        + [schema.STEP_RM_NETWORK_INTERFACES, schema.STEP_RM_NETWORK_PUBLIC_IP_ADDRESSES],
        execute=fetch_virtual_machines,
    ),
]
