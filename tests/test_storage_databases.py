from __future__ import annotations

from azure_inventory.azure.web_linker import AzureWebLinker
from azure_inventory.converters.databases import (
    create_postgresql_database_entity,
    create_postgresql_server_database_relationship,
    create_postgresql_server_entity,
)
from azure_inventory.converters.storage import (
    create_storage_account_container_relationship,
    create_storage_account_entity,
    create_storage_account_file_share_relationship,
    create_storage_container_entity,
    create_storage_file_share_entity,
)

LINKER = AzureWebLinker("contoso.com")
RG = "/subscriptions/sub-1/resourceGroups/rg-1"
ACCOUNT_ID = f"{RG}/providers/Microsoft.Storage/storageAccounts/store1"
SERVER_ID = f"{RG}/providers/Microsoft.DBforPostgreSQL/servers/pg1"

ACCOUNT = {
    "id": ACCOUNT_ID,
    "name": "store1",
    "location": "westeurope",
    "kind": "StorageV2",
    "sku": {"name": "Standard_LRS", "tier": "Standard"},
    "enable_https_traffic_only": True,
    "encryption": {"services": {"blob": {"enabled": True}, "file": {"enabled": True}}},
    "primary_endpoints": {"blob": "https://store1.blob.core.windows.net/"},
}


def test_storage_account_entity() -> None:
    entity = create_storage_account_entity(LINKER, ACCOUNT)

    assert entity["_type"] == "azure_storage_account"
    assert entity["_class"] == "Service"
    assert entity["sku"] == "Standard_LRS"
    assert entity["encryptedBlob"] is True
    assert entity["blobEndpoint"] == "https://store1.blob.core.windows.net/"
    assert entity["createdOn"] is None


def test_container_and_share_relationships() -> None:
    account = create_storage_account_entity(LINKER, ACCOUNT)
    container = create_storage_container_entity(
        LINKER, ACCOUNT, {"id": f"{ACCOUNT_ID}/blobServices/default/containers/c1", "name": "c1", "public_access": "None"}
    )
    share = create_storage_file_share_entity(
        LINKER, ACCOUNT, {"id": f"{ACCOUNT_ID}/fileServices/default/shares/s1", "name": "s1", "share_quota": 100}
    )

    assert container["public"] is False
    assert container["region"] == "westeurope"
    assert share["shareQuota"] == 100

    container_rel = create_storage_account_container_relationship(account, container)
    share_rel = create_storage_account_file_share_relationship(account, share)
    assert container_rel["_type"] == "azure_storage_account_has_container"
    assert share_rel["_type"] == "azure_storage_account_has_file_share"
    assert container_rel["_key"] == f"{ACCOUNT_ID}|has|{container['_key']}"


def test_public_container() -> None:
    container = create_storage_container_entity(
        LINKER, ACCOUNT, {"id": f"{ACCOUNT_ID}/blobServices/default/containers/c2", "public_access": "Blob"}
    )
    assert container["public"] is True
    assert container["displayName"] == container["_key"]


def test_postgresql_server_and_database() -> None:
    server_data = {
        "id": SERVER_ID,
        "name": "pg1",
        "location": "eastus",
        "fully_qualified_domain_name": "pg1.postgres.database.azure.com",
        "ssl_enforcement": "Enabled",
        "version": "11",
    }
    server = create_postgresql_server_entity(LINKER, server_data)
    database = create_postgresql_database_entity(
        LINKER, server_data, {"id": f"{SERVER_ID}/databases/app", "name": "app", "charset": "UTF8"}
    )

    assert server["_class"] == ["Database", "DataStore", "Host"]
    assert server["encrypted"] is True
    assert database["_class"] == ["Database", "DataStore"]
    assert database["encrypted"] is True
    assert database["region"] == "eastus"

    relationship = create_postgresql_server_database_relationship(server, database)
    assert relationship["_type"] == "azure_postgresql_server_has_database"
    assert relationship["_class"] == "HAS"
