from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from ..graph import schema
from ..graph.job_state import JobState
from ..graph.keys import join_key_parts
from ..graph.model import Entity, EntityMetadata, Relationship, RelationshipClass, create_direct_relationship
from ..graph.resource_ids import find_or_build_resource_entity
from .common import Record, nested, require_id


def diagnostic_log_setting_key(setting_id: str, log: Record) -> str:
    return join_key_parts(
        setting_id,
        "logs",
        log.get("category") if log.get("category") is not None else log.get("category_group"),
        log.get("enabled"),
        nested(log, "retention_policy", "days"),
        nested(log, "retention_policy", "enabled"),
    )


def diagnostic_metric_setting_key(setting_id: str, metric: Record) -> str:
    return join_key_parts(
        setting_id,
        "metrics",
        metric.get("category"),
        metric.get("enabled"),
        metric.get("time_grain"),
        nested(metric, "retention_policy", "days"),
        nested(metric, "retention_policy", "enabled"),
    )


def _setting_entity(key: str, metadata: EntityMetadata, setting: Record, item: Record) -> Entity:
    return {
        "_key": key,
        "_type": metadata["_type"],
        "_class": metadata["_class"],
        "id": key,
        "name": setting.get("name"),
        "displayName": setting.get("name"),
        "category": item.get("category"),
        "enabled": item.get("enabled"),
        "eventHubAuthorizationRuleId": setting.get("event_hub_authorization_rule_id"),
        "eventHubName": setting.get("event_hub_name"),
        "logAnalyticsDestinationType": setting.get("log_analytics_destination_type"),
        "serviceBusRuleId": setting.get("service_bus_rule_id"),
        "storageAccountId": setting.get("storage_account_id"),
        "workspaceId": setting.get("workspace_id"),
        "retentionPolicy.days": nested(item, "retention_policy", "days"),
        "retentionPolicy.enabled": nested(item, "retention_policy", "enabled"),
    }


def create_diagnostic_log_setting_entity(setting: Record, log: Record) -> Entity:
    setting_id = require_id(setting, "diagnostic setting")
    entity = _setting_entity(diagnostic_log_setting_key(setting_id, log), schema.DIAGNOSTIC_LOG_SETTING, setting, log)
    entity["categoryGroup"] = log.get("category_group")
    return entity


def create_diagnostic_metric_setting_entity(setting: Record, metric: Record) -> Entity:
    setting_id = require_id(setting, "diagnostic setting")
    entity = _setting_entity(
        diagnostic_metric_setting_key(setting_id, metric), schema.DIAGNOSTIC_METRIC_SETTING, setting, metric
    )
    entity["timeGrain"] = metric.get("time_grain")
    return entity


def _storage_account_relationship(job_state: JobState, setting: Record, entity: Entity) -> Optional[Relationship]:
    storage_account_id = setting.get("storage_account_id")
    if not storage_account_id:
        return None
    storage_account = find_or_build_resource_entity(job_state, storage_account_id)
    return create_direct_relationship(RelationshipClass.USES, entity, storage_account)


def create_diagnostic_settings_graph(
    job_state: JobState, resource: Entity, setting: Record
) -> Tuple[List[Entity], List[Relationship]]:
    """
    Entities for every log and metric category of one diagnostic setting, the
    resource HAS setting edges and, when logs go to a storage account, setting
    USES storage account edges.
    """
    entities: List[Entity] = []
    relationships: List[Relationship] = []
    parts: List[Dict[str, Any]] = [
        {
            "items": setting.get("logs") or [],
            "build": create_diagnostic_log_setting_entity,
            "type": schema.RESOURCE_HAS_DIAGNOSTIC_LOG_SETTING_TYPE,
        },
        {
            "items": setting.get("metrics") or [],
            "build": create_diagnostic_metric_setting_entity,
            "type": schema.RESOURCE_HAS_DIAGNOSTIC_METRIC_SETTING_TYPE,
        },
    ]
    for part in parts:
        for item in part["items"]:
            entity = part["build"](setting, item)
            entities.append(entity)
            relationships.append(
                create_direct_relationship(RelationshipClass.HAS, resource, entity, relationship_type=part["type"])
            )
            uses = _storage_account_relationship(job_state, setting, entity)
            if uses is not None:
                relationships.append(uses)
    return entities, relationships
