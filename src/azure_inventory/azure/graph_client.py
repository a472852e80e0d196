from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from ..auth.providers import GRAPH_SCOPE
from ..logging import get_logger
from ..util.errors import AzureClientError
from ..util.pagination import paginate

LOG = get_logger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_TIMEOUT_SECONDS = 30
NEXT_LINK = "@odata.nextLink"

USER_SELECT = (
    "id,displayName,givenName,surname,jobTitle,mail,mobilePhone,officeLocation,"
    "preferredLanguage,userPrincipalName"
)
MEMBER_SELECT = "id,displayName,jobTitle,mail"


class GraphClient:
    """
    Minimal Microsoft Graph reader for the directory objects the connector ingests.
    Tokens come from the run credential; every list call follows @odata.nextLink.
    """

    def __init__(
        self,
        credential: Any,
        *,
        session: Optional[requests.Session] = None,
        base_url: str = GRAPH_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._credential = credential
        self._session = session or requests.Session()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _headers(self) -> Dict[str, str]:
        token = self._credential.get_token(GRAPH_SCOPE)
        return {"Authorization": f"Bearer {token.token}", "Accept": "application/json"}

    def _get(self, url: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        try:
            resp = self._session.get(url, headers=self._headers(), params=params, timeout=self._timeout)
        except requests.RequestException as e:
            raise AzureClientError(f"Microsoft Graph request failed for {url}: {e}") from e
        if resp.status_code >= 400:
            raise AzureClientError(f"Microsoft Graph returned {resp.status_code} for {url}: {resp.text[:300]}")
        return resp.json()

    def _list(self, path: str, params: Optional[Dict[str, str]] = None) -> Iterator[Dict[str, Any]]:
        first_url = f"{self._base_url}{path}"

        def fetch(cursor: Optional[str]) -> Tuple[List[Dict[str, Any]], Optional[str]]:
            # nextLink already carries the query string
            payload = self._get(cursor, None) if cursor else self._get(first_url, params)
            return payload.get("value") or [], payload.get(NEXT_LINK)

        return paginate(fetch)

    def fetch_organization(self) -> Optional[Dict[str, Any]]:
        for org in self._list("/organization"):
            return org
        return None

    def iterate_users(self) -> Iterator[Dict[str, Any]]:
        return self._list("/users", {"$select": USER_SELECT})

    def iterate_groups(self) -> Iterator[Dict[str, Any]]:
        return self._list("/groups")

    def iterate_group_members(self, group_id: str) -> Iterator[Dict[str, Any]]:
        LOG.debug("Listing group members", extra={"group_id": group_id})
        return self._list(f"/groups/{group_id}/members", {"$select": MEMBER_SELECT})

    def close(self) -> None:
        self._session.close()
