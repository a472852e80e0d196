from __future__ import annotations

from typing import List

from ..azure.resource_manager import iterate_resource_groups
from ..converters.resources import create_resource_group_entity, create_resource_group_resource_relationship
from ..graph import schema
from ..graph.model import Entity, RelationshipClass, generate_relationship_type
from .base import Step, StepContext


def resource_group_relationship_type(entity_type: str) -> str:
    return generate_relationship_type(RelationshipClass.HAS.value, schema.RESOURCE_GROUP["_type"], entity_type)


def publish_resource_group_relationship(ctx: StepContext, resource: Entity) -> None:
    ctx.add_relationship_once(create_resource_group_resource_relationship(ctx.job_state, resource))


def fetch_resource_groups(ctx: StepContext) -> None:
    step_id = schema.STEP_RM_RESOURCES_RESOURCE_GROUPS
    for data in iterate_resource_groups(ctx.clients):
        entity = ctx.convert(step_id, create_resource_group_entity, ctx.web_linker, data)
        if entity is not None:
            ctx.add_entity(entity)


STEPS: List[Step] = [
    Step(
        id=schema.STEP_RM_RESOURCES_RESOURCE_GROUPS,
        name="Resource Groups",
        entities=[schema.RESOURCE_GROUP["_type"]],
        relationships=[],
        depends_on=[schema.STEP_AD_ACCOUNT],
        execute=fetch_resource_groups,
    ),
]
