from __future__ import annotations

from typing import Optional

PORTAL_BASE_URL = "https://portal.azure.com"


class AzureWebLinker:
    """
    Builds Azure portal deep links scoped to the directory's default domain.
    """

    def __init__(self, default_domain: Optional[str]) -> None:
        self.default_domain = default_domain

    def portal_resource_url(self, resource_id: Optional[str]) -> Optional[str]:
        if not resource_id:
            return None
        if self.default_domain:
            return f"{PORTAL_BASE_URL}/#@{self.default_domain}/resource{resource_id}"
        return f"{PORTAL_BASE_URL}/#resource{resource_id}"
