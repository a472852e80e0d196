from __future__ import annotations

import json
from typing import Optional

from ..azure.web_linker import AzureWebLinker
from ..graph import schema
from ..graph.model import Entity
from .common import Record, convert_properties, nested, prefix_properties, require_id

AZURE_RESOURCE_SOURCE = "Azure"


def find_scanned_resource_id(data: Record) -> Optional[str]:
    """
    Id of the assessed resource, present only when the resource lives in Azure.
    The API has returned both "source"/"id" and "Source"/"Id" spellings.
    """
    details = data.get("resource_details") or {}
    source = details.get("source") or details.get("Source")
    if source != AZURE_RESOURCE_SOURCE:
        return None
    return details.get("id") or details.get("Id")


def create_assessment_entity(web_linker: AzureWebLinker, data: Record) -> Entity:
    assessment_id = require_id(data, "security assessment")
    metadata = data.get("metadata") or {}
    category = metadata.get("categories") or metadata.get("category")
    entity: Entity = {}
    entity.update(convert_properties(data))
    entity.update(prefix_properties(convert_properties(metadata), "metadata"))
    entity.update(prefix_properties(convert_properties(data.get("resource_details") or {}), "resourceDetails"))
    entity.update(
        {
            "_key": assessment_id,
            "_type": schema.SECURITY_ASSESSMENT["_type"],
            "_class": schema.SECURITY_ASSESSMENT["_class"],
            "id": assessment_id,
            "name": data.get("name"),
            "displayName": data.get("display_name") or data.get("name"),
            "summary": data.get("display_name"),
            "category": json.dumps(category) if category else "Security Assessment",
            "internal": True,
            "type": data.get("type"),
            "statusCode": nested(data, "status", "code"),
            "statusCause": nested(data, "status", "cause"),
            "statusDescription": nested(data, "status", "description"),
            "scannedResourceId": find_scanned_resource_id(data),
            "webLink": web_linker.portal_resource_url(assessment_id),
        }
    )
    return entity
