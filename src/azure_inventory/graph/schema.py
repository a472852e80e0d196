from __future__ import annotations

from typing import Dict

from .model import EntityMetadata, RelationshipClass, RelationshipMetadata, entity_metadata, relationship_metadata

# -----
# Steps
# -----
STEP_AD_ACCOUNT = "ad-account"
STEP_AD_USERS = "ad-users"
STEP_AD_GROUPS = "ad-groups"
STEP_AD_GROUP_MEMBERS = "ad-group-members"
STEP_RM_RESOURCES_RESOURCE_GROUPS = "rm-resources-resource-groups"
STEP_RM_NETWORK_PUBLIC_IP_ADDRESSES = "rm-network-public-ip-addresses"
STEP_RM_NETWORK_INTERFACES = "rm-network-interfaces"
STEP_RM_NETWORK_SECURITY_GROUPS = "rm-network-security-groups"
STEP_RM_NETWORK_VIRTUAL_NETWORKS = "rm-network-virtual-networks"
STEP_RM_NETWORK_LOAD_BALANCERS = "rm-network-load-balancers"
STEP_RM_NETWORK_FIREWALLS = "rm-network-firewalls"
STEP_RM_NETWORK_SECURITY_GROUP_RULE_RELATIONSHIPS = "rm-network-security-group-rule-relationships"
STEP_RM_COMPUTE_VIRTUAL_MACHINES = "rm-compute-virtual-machines"
STEP_RM_STORAGE_ACCOUNTS = "rm-storage-accounts"
STEP_RM_STORAGE_CONTAINERS = "rm-storage-containers"
STEP_RM_STORAGE_FILE_SHARES = "rm-storage-file-shares"
STEP_RM_DATABASE_POSTGRESQL_DATABASES = "rm-database-postgresql-databases"
STEP_RM_SECURITY_ASSESSMENTS = "rm-security-assessments"

# job_state.set_data key holding the account entity for later steps
ACCOUNT_DATA_KEY = "ACCOUNT_ENTITY"

# --------
# Entities
# --------
ACCOUNT = entity_metadata("azure_account", "Account", "[AD] Account")
USER = entity_metadata("azure_user", "User", "[AD] User")
USER_GROUP = entity_metadata("azure_user_group", "UserGroup", "[AD] Group")
GROUP_MEMBER = entity_metadata("azure_group_member", "User", "[AD] Group Member")

RESOURCE_GROUP = entity_metadata("azure_resource_group", "Group", "[RM] Resource Group")

VIRTUAL_NETWORK = entity_metadata("azure_vnet", "Network", "[RM] Virtual Network")
SUBNET = entity_metadata("azure_subnet", "Network", "[RM] Subnet")
SECURITY_GROUP = entity_metadata("azure_security_group", "Firewall", "[RM] Network Security Group")
NETWORK_INTERFACE = entity_metadata("azure_nic", "NetworkInterface", "[RM] Network Interface")
PUBLIC_IP_ADDRESS = entity_metadata("azure_public_ip", "IpAddress", "[RM] Public IP Address")
LOAD_BALANCER = entity_metadata("azure_lb", "Gateway", "[RM] Load Balancer")
AZURE_FIREWALL = entity_metadata("azure_network_firewall", "Firewall", "[RM] Azure Firewall")

VIRTUAL_MACHINE = entity_metadata("azure_vm", "Host", "[RM] Virtual Machine")

STORAGE_ACCOUNT = entity_metadata("azure_storage_account", "Service", "[RM] Storage Account")
STORAGE_CONTAINER = entity_metadata("azure_storage_container", "DataStore", "[RM] BLOB Storage Container")
STORAGE_FILE_SHARE = entity_metadata("azure_storage_file_share", "DataStore", "[RM] Storage File Share")

POSTGRESQL_SERVER = entity_metadata(
    "azure_postgresql_server", ["Database", "DataStore", "Host"], "[RM] PostgreSQL Server"
)
POSTGRESQL_DATABASE = entity_metadata(
    "azure_postgresql_database", ["Database", "DataStore"], "[RM] PostgreSQL Database"
)

DIAGNOSTIC_LOG_SETTING = entity_metadata(
    "azure_diagnostic_log_setting", "Configuration", "[RM] Diagnostic Log Setting"
)
DIAGNOSTIC_METRIC_SETTING = entity_metadata(
    "azure_diagnostic_metric_setting", "Configuration", "[RM] Diagnostic Metric Setting"
)

SECURITY_ASSESSMENT = entity_metadata("azure_security_assessment", "Assessment", "[RM] Security Assessment")

DEFAULT_RESOURCE_TYPE = "azure_unknown_resource_type"

# Security-group rule targets that are not first-class Azure resources
INTERNET_TARGET_ENTITY: Dict[str, object] = {
    "_key": "global:internet",
    "_type": "internet",
    "_class": ["Internet", "Network"],
    "displayName": "Internet",
    "CIDR": "0.0.0.0/0",
    "CIDRv6": "::/0",
    "public": True,
}
SERVICE_TAG_TYPES: Dict[str, str] = {
    "VirtualNetwork": "azure_virtual_network",
    "AzureLoadBalancer": "azure_load_balancer",
}
DEFAULT_SERVICE_TAG_TYPE = "azure_service_tag"
SECURITY_GROUP_RULE_RELATIONSHIP_TYPE = "azure_security_group_rule"

# -------------
# Relationships
# -------------
ACCOUNT_HAS_USER_TYPE = "azure_account_has_user"
ACCOUNT_HAS_GROUP_TYPE = "azure_account_has_group"
GROUP_HAS_MEMBER_TYPE = "azure_group_has_member"
USER_ASSIGNED_GROUP_TYPE = "azure_user_assigned_group"
VM_USES_NETWORK_INTERFACE_TYPE = "azure_vm_uses_network_interface"
VM_USES_PUBLIC_IP_TYPE = "azure_vm_uses_public_ip"
RESOURCE_HAS_DIAGNOSTIC_LOG_SETTING_TYPE = "azure_resource_has_diagnostic_log_setting"
RESOURCE_HAS_DIAGNOSTIC_METRIC_SETTING_TYPE = "azure_resource_has_diagnostic_metric_setting"

VIRTUAL_NETWORK_CONTAINS_SUBNET: RelationshipMetadata = relationship_metadata(
    RelationshipClass.CONTAINS, VIRTUAL_NETWORK["_type"], SUBNET["_type"]
)
SECURITY_GROUP_PROTECTS_SUBNET: RelationshipMetadata = relationship_metadata(
    RelationshipClass.PROTECTS, SECURITY_GROUP["_type"], SUBNET["_type"]
)
SECURITY_GROUP_PROTECTS_NETWORK_INTERFACE: RelationshipMetadata = relationship_metadata(
    RelationshipClass.PROTECTS, SECURITY_GROUP["_type"], NETWORK_INTERFACE["_type"]
)
STORAGE_ACCOUNT_HAS_CONTAINER: RelationshipMetadata = relationship_metadata(
    RelationshipClass.HAS, STORAGE_ACCOUNT["_type"], STORAGE_CONTAINER["_type"]
)
STORAGE_ACCOUNT_HAS_FILE_SHARE: RelationshipMetadata = relationship_metadata(
    RelationshipClass.HAS, STORAGE_ACCOUNT["_type"], STORAGE_FILE_SHARE["_type"]
)
POSTGRESQL_SERVER_HAS_DATABASE: RelationshipMetadata = relationship_metadata(
    RelationshipClass.HAS, POSTGRESQL_SERVER["_type"], POSTGRESQL_DATABASE["_type"]
)
ACCOUNT_HAS_SECURITY_ASSESSMENT: RelationshipMetadata = relationship_metadata(
    RelationshipClass.HAS, ACCOUNT["_type"], SECURITY_ASSESSMENT["_type"]
)

ALL_ENTITY_METADATA: Dict[str, EntityMetadata] = {
    m["_type"]: m
    for m in (
        ACCOUNT,
        USER,
        USER_GROUP,
        GROUP_MEMBER,
        RESOURCE_GROUP,
        VIRTUAL_NETWORK,
        SUBNET,
        SECURITY_GROUP,
        NETWORK_INTERFACE,
        PUBLIC_IP_ADDRESS,
        LOAD_BALANCER,
        AZURE_FIREWALL,
        VIRTUAL_MACHINE,
        STORAGE_ACCOUNT,
        STORAGE_CONTAINER,
        STORAGE_FILE_SHARE,
        POSTGRESQL_SERVER,
        POSTGRESQL_DATABASE,
        DIAGNOSTIC_LOG_SETTING,
        DIAGNOSTIC_METRIC_SETTING,
        SECURITY_ASSESSMENT,
    )
}
