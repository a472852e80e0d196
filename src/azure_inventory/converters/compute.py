from __future__ import annotations

from typing import List

from ..azure.web_linker import AzureWebLinker
from ..graph import schema
from ..graph.model import Entity, Relationship, RelationshipClass
from .common import Record, create_resource_entity, nested, require_id


def create_virtual_machine_entity(web_linker: AzureWebLinker, data: Record) -> Entity:
    return create_resource_entity(
        web_linker,
        data,
        schema.VIRTUAL_MACHINE,
        {
            "vmId": data.get("vm_id"),
            "vmSize": nested(data, "hardware_profile", "vm_size"),
            "osType": nested(data, "storage_profile", "os_disk", "os_type"),
            "computerName": nested(data, "os_profile", "computer_name"),
            "provisioningState": data.get("provisioning_state"),
            "licenseType": data.get("license_type"),
        },
        what="virtual machine",
    )


def network_interface_ids(vm: Record) -> List[str]:
    refs = nested(vm, "network_profile", "network_interfaces") or []
    return [ref["id"] for ref in refs if ref.get("id")]


def _vm_uses(vm: Record, target: Record, relationship_type: str, what: str) -> Relationship:
    vm_id = require_id(vm, "virtual machine")
    target_id = require_id(target, what)
    return {
        "_key": f"{vm_id}_uses_{target_id}",
        "_type": relationship_type,
        "_class": RelationshipClass.USES.value,
        "_fromEntityKey": vm_id,
        "_toEntityKey": target_id,
        "displayName": RelationshipClass.USES.value,
        "vmId": vm.get("vm_id"),
    }


def create_virtual_machine_network_interface_relationship(vm: Record, nic: Record) -> Relationship:
    return _vm_uses(vm, nic, schema.VM_USES_NETWORK_INTERFACE_TYPE, "network interface")


def create_virtual_machine_public_ip_address_relationship(vm: Record, ip: Record) -> Relationship:
    return _vm_uses(vm, ip, schema.VM_USES_PUBLIC_IP_TYPE, "public IP address")
