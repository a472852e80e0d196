from __future__ import annotations

import types

import pytest
import requests

from azure_inventory.auth.providers import GRAPH_SCOPE
from azure_inventory.azure.graph_client import GRAPH_BASE_URL, MEMBER_SELECT, USER_SELECT, GraphClient
from azure_inventory.util.errors import AzureClientError


class _FakeCredential:
    def __init__(self) -> None:
        self.scopes = []

    def get_token(self, scope):
        self.scopes.append(scope)
        return types.SimpleNamespace(token="tok-123", expires_on=0)


class _FakeResponse:
    def __init__(self, status_code: int, payload=None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload


class _FakeSession:
    def __init__(self, responses) -> None:
        self._responses = dict(responses)
        self.requests = []
        self.closed = False

    def get(self, url, headers=None, params=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "params": params, "timeout": timeout})
        response = self._responses[url]
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


def test_list_follows_next_link_without_repeating_params() -> None:
    next_link = f"{GRAPH_BASE_URL}/users?$skiptoken=abc"
    session = _FakeSession(
        {
            f"{GRAPH_BASE_URL}/users": _FakeResponse(
                200, {"value": [{"id": "u-1"}], "@odata.nextLink": next_link}
            ),
            next_link: _FakeResponse(200, {"value": [{"id": "u-2"}]}),
        }
    )
    credential = _FakeCredential()
    client = GraphClient(credential, session=session)

    users = list(client.iterate_users())

    assert [u["id"] for u in users] == ["u-1", "u-2"]
    assert session.requests[0]["params"] == {"$select": USER_SELECT}
    assert session.requests[1]["params"] is None
    assert session.requests[0]["headers"]["Authorization"] == "Bearer tok-123"
    assert credential.scopes == [GRAPH_SCOPE, GRAPH_SCOPE]


def test_group_members_path_and_select() -> None:
    url = f"{GRAPH_BASE_URL}/groups/g-1/members"
    session = _FakeSession({url: _FakeResponse(200, {"value": [{"id": "u-1"}]})})
    client = GraphClient(_FakeCredential(), session=session)

    assert list(client.iterate_group_members("g-1")) == [{"id": "u-1"}]
    assert session.requests[0]["params"] == {"$select": MEMBER_SELECT}


def test_fetch_organization_returns_first_or_none() -> None:
    url = f"{GRAPH_BASE_URL}/organization"
    session = _FakeSession({url: _FakeResponse(200, {"value": [{"id": "dir-1"}, {"id": "dir-2"}]})})
    assert GraphClient(_FakeCredential(), session=session).fetch_organization() == {"id": "dir-1"}

    empty = _FakeSession({url: _FakeResponse(200, {"value": []})})
    assert GraphClient(_FakeCredential(), session=empty).fetch_organization() is None


def test_error_status_raises_azure_client_error() -> None:
    url = f"{GRAPH_BASE_URL}/groups"
    session = _FakeSession({url: _FakeResponse(403, text="Authorization_RequestDenied")})
    client = GraphClient(_FakeCredential(), session=session)

    with pytest.raises(AzureClientError, match="403"):
        list(client.iterate_groups())


def test_transport_error_raises_azure_client_error() -> None:
    url = f"{GRAPH_BASE_URL}/groups"
    session = _FakeSession({url: requests.ConnectionError("connection reset")})
    client = GraphClient(_FakeCredential(), session=session)

    with pytest.raises(AzureClientError, match="connection reset"):
        list(client.iterate_groups())


def test_close_closes_session() -> None:
    session = _FakeSession({})
    GraphClient(_FakeCredential(), session=session).close()
    assert session.closed
