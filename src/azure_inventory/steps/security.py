from __future__ import annotations

from typing import List

from ..azure.resource_manager import iterate_security_assessments
from ..converters.security import create_assessment_entity
from ..graph import schema
from ..graph.model import RelationshipClass, create_direct_relationship
from .active_directory import get_account_entity
from .base import Step, StepContext


def fetch_security_assessments(ctx: StepContext) -> None:
    account = get_account_entity(ctx)
    for data in iterate_security_assessments(ctx.clients):
        assessment = ctx.convert(schema.STEP_RM_SECURITY_ASSESSMENTS, create_assessment_entity, ctx.web_linker, data)
        if assessment is None or ctx.add_entity(assessment) is None:
            continue
        ctx.add_relationship(
            create_direct_relationship(
                RelationshipClass.HAS,
                account,
                assessment,
                relationship_type=schema.ACCOUNT_HAS_SECURITY_ASSESSMENT["_type"],
            )
        )


STEPS: List[Step] = [
    Step(
        id=schema.STEP_RM_SECURITY_ASSESSMENTS,
        name="Security Assessments",
        entities=[schema.SECURITY_ASSESSMENT["_type"]],
        relationships=[schema.ACCOUNT_HAS_SECURITY_ASSESSMENT["_type"]],
        depends_on=[schema.STEP_AD_ACCOUNT],
        execute=fetch_security_assessments,
    ),
]
