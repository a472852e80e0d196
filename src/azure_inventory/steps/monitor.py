from __future__ import annotations

from typing import List

from ..azure.resource_manager import iterate_diagnostic_settings
from ..converters.monitor import create_diagnostic_settings_graph
from ..graph import schema
from ..graph.model import Entity
from .base import StepContext

DIAGNOSTIC_SETTINGS_ENTITIES: List[str] = [
    schema.DIAGNOSTIC_LOG_SETTING["_type"],
    schema.DIAGNOSTIC_METRIC_SETTING["_type"],
]
DIAGNOSTIC_SETTINGS_RELATIONSHIPS: List[str] = [
    schema.RESOURCE_HAS_DIAGNOSTIC_LOG_SETTING_TYPE,
    schema.RESOURCE_HAS_DIAGNOSTIC_METRIC_SETTING_TYPE,
]


def ingest_diagnostic_settings(ctx: StepContext, step_id: str, resource: Entity) -> None:
    """
    Publish the diagnostic settings of one resource next to it.
    """
    for setting in iterate_diagnostic_settings(ctx.clients, resource["_key"]):
        graph = ctx.convert(step_id, create_diagnostic_settings_graph, ctx.job_state, resource, setting)
        if graph is None:
            continue
        entities, relationships = graph
        for entity in entities:
            ctx.add_entity(entity)
        for relationship in relationships:
            ctx.add_relationship_once(relationship)
