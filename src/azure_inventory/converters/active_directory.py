from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..graph import schema
from ..graph.keys import generate_entity_key
from ..graph.model import (
    Entity,
    EntityMetadata,
    Relationship,
    RelationshipClass,
    RelationshipDirection,
    create_mapped_relationship,
)
from ..util.time import get_time
from .common import Record, require_id

ODATA_TYPE = "@odata.type"
ODATA_USER = "#microsoft.graph.user"
ODATA_GROUP = "#microsoft.graph.group"

# Group members are directory objects; the OData type picks the graph type.
MEMBER_TYPES: Dict[str, EntityMetadata] = {
    ODATA_USER: schema.USER,
    ODATA_GROUP: schema.USER_GROUP,
}
MEMBER_TARGET_FILTER_KEYS = [["_type", "_key"]]


def _default_domain(organization: Optional[Record]) -> Tuple[Optional[str], List[str]]:
    default_domain: Optional[str] = None
    names: List[str] = []
    for domain in (organization or {}).get("verifiedDomains") or []:
        if domain.get("isDefault"):
            default_domain = domain.get("name")
        names.append(domain.get("name"))
    return default_domain, names


def create_account_entity(instance_id: str, instance_name: Optional[str], organization: Optional[Record]) -> Entity:
    """
    The account is the integration instance; directory details come from the
    Microsoft Graph organization record when it could be read.
    """
    default_domain, verified_domains = _default_domain(organization)
    org = organization or {}
    return {
        "_key": generate_entity_key(schema.ACCOUNT["_type"], instance_id),
        "_type": schema.ACCOUNT["_type"],
        "_class": schema.ACCOUNT["_class"],
        "id": org.get("id"),
        "name": org.get("displayName"),
        "displayName": instance_name or org.get("displayName") or instance_id,
        "organizationName": org.get("displayName"),
        "defaultDomain": default_domain,
        "verifiedDomains": verified_domains,
        "createdOn": get_time(org.get("createdDateTime")),
    }


def create_user_entity(data: Record) -> Entity:
    user_id = require_id(data, "user")
    return {
        "_key": generate_entity_key(schema.USER["_type"], user_id),
        "_type": schema.USER["_type"],
        "_class": schema.USER["_class"],
        "id": user_id,
        "displayName": data.get("displayName"),
        "givenName": data.get("givenName"),
        "jobTitle": data.get("jobTitle"),
        "mail": data.get("mail"),
        "mobilePhone": data.get("mobilePhone"),
        "officeLocation": data.get("officeLocation"),
        "preferredLanguage": data.get("preferredLanguage"),
        "surname": data.get("surname"),
        "userPrincipalName": data.get("userPrincipalName"),
    }


def create_group_entity(data: Record) -> Entity:
    group_id = require_id(data, "group")
    return {
        "_key": generate_entity_key(schema.USER_GROUP["_type"], group_id),
        "_type": schema.USER_GROUP["_type"],
        "_class": schema.USER_GROUP["_class"],
        "id": group_id,
        "displayName": data.get("displayName"),
        "classification": data.get("classification"),
        "createdOn": get_time(data.get("createdDateTime")),
        "deletedOn": get_time(data.get("deletedDateTime")),
        "renewedOn": get_time(data.get("renewedDateTime")),
        "description": data.get("description"),
        "mail": data.get("mail"),
        "mailEnabled": data.get("mailEnabled"),
        "mailNickname": data.get("mailNickname"),
        "securityEnabled": data.get("securityEnabled"),
    }


def create_account_user_relationship(account: Entity, user: Record) -> Relationship:
    user_key = generate_entity_key(schema.USER["_type"], require_id(user, "user"))
    return {
        "_key": f"{account['_key']}_{user_key}",
        "_type": schema.ACCOUNT_HAS_USER_TYPE,
        "_class": RelationshipClass.HAS.value,
        "_fromEntityKey": account["_key"],
        "_toEntityKey": user_key,
    }


def create_account_group_relationship(account: Entity, group: Record) -> Relationship:
    group_key = generate_entity_key(schema.USER_GROUP["_type"], require_id(group, "group"))
    return {
        "_key": f"{account['_key']}_{group_key}",
        "_type": schema.ACCOUNT_HAS_GROUP_TYPE,
        "_class": RelationshipClass.HAS.value,
        "_fromEntityKey": account["_key"],
        "_toEntityKey": group_key,
    }


def member_metadata(member: Mapping[str, Any]) -> EntityMetadata:
    """
    Graph type for a group member; unknown directory objects become generic members.
    """
    return MEMBER_TYPES.get(member.get(ODATA_TYPE) or "", schema.GROUP_MEMBER)


def create_group_member_relationship(group: Record, member: Record) -> Relationship:
    group_id = require_id(group, "group")
    member_id = require_id(member, "group member")
    metadata = member_metadata(member)
    group_key = generate_entity_key(schema.USER_GROUP["_type"], group_id)
    member_key = generate_entity_key(metadata["_type"], member_id)
    return create_mapped_relationship(
        RelationshipClass.HAS,
        group_key,
        {
            "_key": member_key,
            "_type": metadata["_type"],
            "_class": metadata["_class"],
            "displayName": member.get("displayName"),
            "jobTitle": member.get("jobTitle"),
            "email": member.get("mail"),
        },
        MEMBER_TARGET_FILTER_KEYS,
        key=f"{group_key}_{member_key}",
        relationship_type=schema.GROUP_HAS_MEMBER_TYPE,
        direction=RelationshipDirection.FORWARD,
        properties={
            "groupId": group_id,
            "memberId": member_id,
            "memberType": member.get(ODATA_TYPE),
        },
    )


def create_user_group_relationships(group: Record, members: List[Record]) -> List[Relationship]:
    """
    Direct group ASSIGNED user edges; only members that are users produce one.
    """
    group_key = generate_entity_key(schema.USER_GROUP["_type"], require_id(group, "group"))
    relationships: List[Relationship] = []
    for member in members:
        if member.get(ODATA_TYPE) != ODATA_USER:
            continue
        user_key = generate_entity_key(schema.USER["_type"], require_id(member, "group member"))
        relationships.append(
            {
                "_key": f"{group_key}_assigned_{user_key}",
                "_type": schema.USER_ASSIGNED_GROUP_TYPE,
                "_class": RelationshipClass.ASSIGNED.value,
                "_fromEntityKey": group_key,
                "_toEntityKey": user_key,
            }
        )
    return relationships
