from __future__ import annotations

from ..azure.web_linker import AzureWebLinker
from ..graph import schema
from ..graph.model import Entity, Relationship, RelationshipClass, create_direct_relationship
from .common import Record, create_resource_entity, nested


def create_postgresql_server_entity(web_linker: AzureWebLinker, data: Record) -> Entity:
    ssl = data.get("ssl_enforcement")
    return create_resource_entity(
        web_linker,
        data,
        schema.POSTGRESQL_SERVER,
        {
            "hostname": data.get("fully_qualified_domain_name"),
            "fqdn": data.get("fully_qualified_domain_name"),
            "version": data.get("version"),
            "sku": nested(data, "sku", "name"),
            "skuTier": nested(data, "sku", "tier"),
            "state": data.get("user_visible_state"),
            "adminLogin": data.get("administrator_login"),
            "sslEnforcement": ssl,
            "encrypted": ssl == "Enabled" if ssl is not None else None,
            "publicNetworkAccess": data.get("public_network_access"),
        },
        what="PostgreSQL server",
    )


def create_postgresql_database_entity(web_linker: AzureWebLinker, server: Record, data: Record) -> Entity:
    return create_resource_entity(
        web_linker,
        data,
        schema.POSTGRESQL_DATABASE,
        {
            "region": server.get("location"),
            "charset": data.get("charset"),
            "collation": data.get("collation"),
            "encrypted": server.get("ssl_enforcement") == "Enabled" if server.get("ssl_enforcement") else None,
        },
        what="PostgreSQL database",
    )


def create_postgresql_server_database_relationship(server: Entity, database: Entity) -> Relationship:
    return create_direct_relationship(
        RelationshipClass.HAS,
        server,
        database,
        relationship_type=schema.POSTGRESQL_SERVER_HAS_DATABASE["_type"],
    )
