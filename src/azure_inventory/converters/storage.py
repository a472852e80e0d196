from __future__ import annotations

from ..azure.web_linker import AzureWebLinker
from ..graph import schema
from ..graph.model import Entity, Relationship, RelationshipClass, create_direct_relationship
from ..util.time import get_time
from .common import Record, create_resource_entity, nested


def create_storage_account_entity(web_linker: AzureWebLinker, data: Record) -> Entity:
    endpoints = data.get("primary_endpoints") or {}
    return create_resource_entity(
        web_linker,
        data,
        schema.STORAGE_ACCOUNT,
        {
            "kind": data.get("kind"),
            "sku": nested(data, "sku", "name"),
            "skuTier": nested(data, "sku", "tier"),
            "accessTier": data.get("access_tier"),
            "enableHttpsTrafficOnly": data.get("enable_https_traffic_only"),
            "allowBlobPublicAccess": data.get("allow_blob_public_access"),
            "minimumTlsVersion": data.get("minimum_tls_version"),
            "encryptedBlob": nested(data, "encryption", "services", "blob", "enabled"),
            "encryptedFile": nested(data, "encryption", "services", "file", "enabled"),
            "blobEndpoint": endpoints.get("blob"),
            "fileEndpoint": endpoints.get("file"),
            "queueEndpoint": endpoints.get("queue"),
            "tableEndpoint": endpoints.get("table"),
            "webEndpoint": endpoints.get("web"),
            "provisioningState": data.get("provisioning_state"),
            "createdOn": get_time(data.get("creation_time")),
        },
        what="storage account",
    )


def create_storage_container_entity(web_linker: AzureWebLinker, account: Record, data: Record) -> Entity:
    public_access = data.get("public_access")
    return create_resource_entity(
        web_linker,
        data,
        schema.STORAGE_CONTAINER,
        {
            "region": account.get("location"),
            "public": public_access not in (None, "None"),
            "publicAccess": public_access,
            "hasImmutabilityPolicy": data.get("has_immutability_policy"),
            "hasLegalHold": data.get("has_legal_hold"),
            "etag": data.get("etag"),
            "lastModifiedOn": get_time(data.get("last_modified_time")),
        },
        what="blob container",
    )


def create_storage_file_share_entity(web_linker: AzureWebLinker, account: Record, data: Record) -> Entity:
    return create_resource_entity(
        web_linker,
        data,
        schema.STORAGE_FILE_SHARE,
        {
            "region": account.get("location"),
            "shareQuota": data.get("share_quota"),
            "accessTier": data.get("access_tier"),
            "enabledProtocols": data.get("enabled_protocols"),
            "etag": data.get("etag"),
            "lastModifiedOn": get_time(data.get("last_modified_time")),
        },
        what="file share",
    )


def create_storage_account_container_relationship(account: Entity, container: Entity) -> Relationship:
    return create_direct_relationship(
        RelationshipClass.HAS,
        account,
        container,
        relationship_type=schema.STORAGE_ACCOUNT_HAS_CONTAINER["_type"],
    )


def create_storage_account_file_share_relationship(account: Entity, share: Entity) -> Relationship:
    return create_direct_relationship(
        RelationshipClass.HAS,
        account,
        share,
        relationship_type=schema.STORAGE_ACCOUNT_HAS_FILE_SHARE["_type"],
    )
