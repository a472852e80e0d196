from __future__ import annotations

from typing import List

from ..azure.web_linker import AzureWebLinker
from ..converters.active_directory import (
    create_account_entity,
    create_account_group_relationship,
    create_account_user_relationship,
    create_group_entity,
    create_group_member_relationship,
    create_user_entity,
    create_user_group_relationships,
)
from ..graph import schema
from ..graph.model import Entity
from ..util.errors import AzureClientError, ConfigError
from .base import Step, StepContext


def get_account_entity(ctx: StepContext) -> Entity:
    account = ctx.job_state.get_data(schema.ACCOUNT_DATA_KEY)
    if account is None:
        raise ConfigError(f"Account entity not found; run {schema.STEP_AD_ACCOUNT} first")
    return account


def fetch_account(ctx: StepContext) -> None:
    cfg = ctx.config
    organization = None
    if cfg.ingest_active_directory and ctx.graph is not None:
        try:
            organization = ctx.graph.fetch_organization()
        except AzureClientError as e:
            # Account still publishes; portal links go without a domain.
            ctx.logger.warning(
                "Could not read the directory organization",
                extra={"step": schema.STEP_AD_ACCOUNT, "phase": "fetch", "error": str(e)},
            )
    account = create_account_entity(cfg.instance_id, cfg.instance_name, organization)
    ctx.add_entity(account)
    ctx.job_state.set_data(schema.ACCOUNT_DATA_KEY, account)
    ctx.web_linker = AzureWebLinker(account.get("defaultDomain"))


def fetch_users(ctx: StepContext) -> None:
    account = get_account_entity(ctx)
    for user in ctx.graph.iterate_users():
        entity = ctx.convert(schema.STEP_AD_USERS, create_user_entity, user)
        if entity is None or ctx.add_entity(entity) is None:
            continue
        ctx.add_relationship(create_account_user_relationship(account, user))


def fetch_groups(ctx: StepContext) -> None:
    account = get_account_entity(ctx)
    for group in ctx.graph.iterate_groups():
        entity = ctx.convert(schema.STEP_AD_GROUPS, create_group_entity, group)
        if entity is None or ctx.add_entity(entity) is None:
            continue
        ctx.add_relationship(create_account_group_relationship(account, group))


def fetch_group_members(ctx: StepContext) -> None:
    step_id = schema.STEP_AD_GROUP_MEMBERS
    for group in ctx.job_state.iterate_entities(schema.USER_GROUP["_type"]):
        members = []
        try:
            for member in ctx.graph.iterate_group_members(group["id"]):
                relationship = ctx.convert(step_id, create_group_member_relationship, group, member)
                if relationship is None:
                    continue
                ctx.add_relationship_once(relationship)
                members.append(member)
        except AzureClientError as e:
            ctx.logger.warning(
                "Group members unavailable",
                extra={"step": step_id, "phase": "fetch", "group_id": group["id"], "error": str(e)},
            )
        for relationship in create_user_group_relationships(group, members):
            ctx.add_relationship_once(relationship)


STEPS: List[Step] = [
    Step(
        id=schema.STEP_AD_ACCOUNT,
        name="Active Directory Info",
        entities=[schema.ACCOUNT["_type"]],
        relationships=[],
        depends_on=[],
        execute=fetch_account,
    ),
    Step(
        id=schema.STEP_AD_USERS,
        name="Active Directory Users",
        entities=[schema.USER["_type"]],
        relationships=[schema.ACCOUNT_HAS_USER_TYPE],
        depends_on=[schema.STEP_AD_ACCOUNT],
        execute=fetch_users,
        active_directory=True,
    ),
    Step(
        id=schema.STEP_AD_GROUPS,
        name="Active Directory Groups",
        entities=[schema.USER_GROUP["_type"]],
        relationships=[schema.ACCOUNT_HAS_GROUP_TYPE],
        depends_on=[schema.STEP_AD_ACCOUNT],
        execute=fetch_groups,
        active_directory=True,
    ),
    Step(
        id=schema.STEP_AD_GROUP_MEMBERS,
        name="Active Directory Group Members",
        entities=[],
        relationships=[schema.GROUP_HAS_MEMBER_TYPE, schema.USER_ASSIGNED_GROUP_TYPE],
        depends_on=[schema.STEP_AD_GROUPS],
        execute=fetch_group_members,
        active_directory=True,
    ),
]
