from __future__ import annotations

from typing import List

from ..azure.resource_manager import iterate_postgresql_databases, iterate_postgresql_servers
from ..converters.databases import (
    create_postgresql_database_entity,
    create_postgresql_server_database_relationship,
    create_postgresql_server_entity,
)
from ..graph import schema
from .base import Step, StepContext
from .monitor import DIAGNOSTIC_SETTINGS_ENTITIES, DIAGNOSTIC_SETTINGS_RELATIONSHIPS, ingest_diagnostic_settings
from .network import RM_BASE_DEPENDS_ON
from .resources import publish_resource_group_relationship, resource_group_relationship_type


def fetch_postgresql_databases(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_DATABASE_POSTGRESQL_DATABASES
    for server_data in iterate_postgresql_servers(ctx.clients):
        server = ctx.convert(step_id, create_postgresql_server_entity, ctx.web_linker, server_data)
        if server is None or ctx.add_entity(server) is None:
            continue
        publish_resource_group_relationship(ctx, server)
        ingest_diagnostic_settings(ctx, step_id, server)

        for data in iterate_postgresql_databases(ctx.clients, server_data):
            database = ctx.convert(step_id, create_postgresql_database_entity, ctx.web_linker, server_data, data)
            if database is None or ctx.add_entity(database) is None:
                continue
            ctx.add_relationship(create_postgresql_server_database_relationship(server, database))


STEPS: List[Step] = [
    Step(
        id=schema.STEP_RM_DATABASE_POSTGRESQL_DATABASES,
        name="PostgreSQL Databases",
        entities=[schema.POSTGRESQL_SERVER["_type"], schema.POSTGRESQL_DATABASE["_type"]]
        + DIAGNOSTIC_SETTINGS_ENTITIES,
        relationships=[
            resource_group_relationship_type(schema.POSTGRESQL_SERVER["_type"]),
            schema.POSTGRESQL_SERVER_HAS_DATABASE["_type"],
        ]
        + DIAGNOSTIC_SETTINGS_RELATIONSHIPS,
        depends_on=list(RM_BASE_DEPENDS_ON),
        execute=fetch_postgresql_databases,
    ),
]
