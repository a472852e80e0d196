from __future__ import annotations

from azure_inventory.azure.web_linker import AzureWebLinker
from azure_inventory.converters.security import create_assessment_entity, find_scanned_resource_id

VM_ID = "/subscriptions/sub-1/resourceGroups/rg-1/providers/Microsoft.Compute/virtualMachines/vm-1"
ASSESSMENT_ID = f"{VM_ID}/providers/Microsoft.Security/assessments/1195afff"

ASSESSMENT = {
    "id": ASSESSMENT_ID,
    "name": "1195afff",
    "type": "Microsoft.Security/assessments",
    "display_name": "Install endpoint protection",
    "resource_details": {"source": "Azure", "id": VM_ID},
    "status": {"code": "Unhealthy", "cause": "", "description": "Missing agent"},
    "metadata": {"severity": "High", "categories": ["Compute"], "assessment_type": "BuiltIn"},
}


def test_find_scanned_resource_id_handles_both_spellings() -> None:
    assert find_scanned_resource_id(ASSESSMENT) == VM_ID
    assert find_scanned_resource_id({"resource_details": {"Source": "Azure", "Id": VM_ID}}) == VM_ID
    assert find_scanned_resource_id({"resource_details": {"source": "OnPremise", "id": "x"}}) is None


def test_assessment_entity() -> None:
    entity = create_assessment_entity(AzureWebLinker(None), ASSESSMENT)

    assert entity["_key"] == ASSESSMENT_ID
    assert entity["_type"] == "azure_security_assessment"
    assert entity["_class"] == "Assessment"
    assert entity["displayName"] == "Install endpoint protection"
    assert entity["category"] == '["Compute"]'
    assert entity["statusCode"] == "Unhealthy"
    assert entity["metadataSeverity"] == "High"
    assert entity["metadataAssessmentType"] == "BuiltIn"
    assert entity["resourceDetailsSource"] == "Azure"
    assert entity["scannedResourceId"] == VM_ID
