from __future__ import annotations

from typing import Dict, List

from ..azure.resource_manager import iterate_blob_containers, iterate_file_shares, iterate_storage_accounts
from ..converters.storage import (
    create_storage_account_container_relationship,
    create_storage_account_entity,
    create_storage_account_file_share_relationship,
    create_storage_container_entity,
    create_storage_file_share_entity,
)
from ..graph import schema
from ..graph.model import Entity
from .base import Step, StepContext
from .monitor import DIAGNOSTIC_SETTINGS_ENTITIES, DIAGNOSTIC_SETTINGS_RELATIONSHIPS, ingest_diagnostic_settings
from .network import RM_BASE_DEPENDS_ON
from .resources import publish_resource_group_relationship, resource_group_relationship_type

# job_state.set_data key: storage account id -> raw account record
STORAGE_ACCOUNT_RECORDS_KEY = "STORAGE_ACCOUNT_RECORDS"


def _account_records(ctx: StepContext) -> Dict[str, Dict]:
    return ctx.job_state.get_data(STORAGE_ACCOUNT_RECORDS_KEY) or {}


def fetch_storage_accounts(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_STORAGE_ACCOUNTS
    records: Dict[str, Dict] = {}
    for data in iterate_storage_accounts(ctx.clients):
        entity = ctx.convert(step_id, create_storage_account_entity, ctx.web_linker, data)
        if entity is None or ctx.add_entity(entity) is None:
            continue
        records[entity["_key"]] = data
        publish_resource_group_relationship(ctx, entity)
        ingest_diagnostic_settings(ctx, step_id, entity)
    ctx.job_state.set_data(STORAGE_ACCOUNT_RECORDS_KEY, records)


def _accounts(ctx: StepContext) -> List[Entity]:
    return list(ctx.job_state.iterate_entities(schema.STORAGE_ACCOUNT["_type"]))


def fetch_storage_containers(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_STORAGE_CONTAINERS
    records = _account_records(ctx)
    for account in _accounts(ctx):
        record = records.get(account["_key"], account)
        for data in iterate_blob_containers(ctx.clients, record):
            container = ctx.convert(step_id, create_storage_container_entity, ctx.web_linker, record, data)
            if container is None or ctx.add_entity(container) is None:
                continue
            ctx.add_relationship(create_storage_account_container_relationship(account, container))


def fetch_storage_file_shares(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_STORAGE_FILE_SHARES
    records = _account_records(ctx)
    for account in _accounts(ctx):
        record = records.get(account["_key"], account)
        for data in iterate_file_shares(ctx.clients, record):
            share = ctx.convert(step_id, create_storage_file_share_entity, ctx.web_linker, record, data)
            if share is None or ctx.add_entity(share) is None:
                continue
            ctx.add_relationship(create_storage_account_file_share_relationship(account, share))


STEPS: List[Step] = [
    Step(
        id=schema.STEP_RM_STORAGE_ACCOUNTS,
        name="Storage Accounts",
        entities=[schema.STORAGE_ACCOUNT["_type"]] + DIAGNOSTIC_SETTINGS_ENTITIES,
        relationships=[resource_group_relationship_type(schema.STORAGE_ACCOUNT["_type"])]
        + DIAGNOSTIC_SETTINGS_RELATIONSHIPS,
        depends_on=list(RM_BASE_DEPENDS_ON),
        execute=fetch_storage_accounts,
    ),
    Step(
        id=schema.STEP_RM_STORAGE_CONTAINERS,
        name="Storage Containers",
        entities=[schema.STORAGE_CONTAINER["_type"]],
        relationships=[schema.STORAGE_ACCOUNT_HAS_CONTAINER["_type"]],
        depends_on=[schema.STEP_RM_STORAGE_ACCOUNTS],
        execute=fetch_storage_containers,
    ),
    Step(
        id=schema.STEP_RM_STORAGE_FILE_SHARES,
        name="Storage File Shares",
        entities=[schema.STORAGE_FILE_SHARE["_type"]],
        relationships=[schema.STORAGE_ACCOUNT_HAS_FILE_SHARE["_type"]],
        depends_on=[schema.STEP_RM_STORAGE_ACCOUNTS],
        execute=fetch_storage_file_shares,
    ),
]
