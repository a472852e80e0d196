from __future__ import annotations

import types

import pytest
from azure.core.exceptions import HttpResponseError

from azure_inventory.azure import resource_manager as rm
from azure_inventory.util.errors import AzureClientError


class _Model:
    def __init__(self, **fields) -> None:
        self._fields = fields

    def as_dict(self):
        return dict(self._fields)


def _clients(**services):
    return types.SimpleNamespace(
        subscription_id="sub-1", **{name: (lambda svc=svc: svc) for name, svc in services.items()}
    )


def test_pager_items_become_plain_dicts() -> None:
    network = types.SimpleNamespace(
        virtual_networks=types.SimpleNamespace(list_all=lambda: iter([_Model(id="/v1", name="v1"), {"id": "/v2"}]))
    )
    assert list(rm.iterate_virtual_networks(_clients(network=network))) == [
        {"id": "/v1", "name": "v1"},
        {"id": "/v2"},
    ]


def test_azure_errors_are_mapped_with_context() -> None:
    def _fail():
        raise HttpResponseError(message="AuthorizationFailed")

    compute = types.SimpleNamespace(virtual_machines=types.SimpleNamespace(list_all=_fail))
    with pytest.raises(AzureClientError, match="Azure error while listing virtual machines"):
        list(rm.iterate_virtual_machines(_clients(compute=compute)))


def test_non_azure_errors_propagate_unchanged() -> None:
    def _fail():
        raise KeyError("boom")

    storage = types.SimpleNamespace(storage_accounts=types.SimpleNamespace(list=_fail))
    with pytest.raises(KeyError):
        list(rm.iterate_storage_accounts(_clients(storage=storage)))


def test_child_listings_use_resource_group_and_name() -> None:
    calls = []

    def _list(group, name):
        calls.append((group, name))
        return iter([{"id": f"/c/{name}"}])

    storage = types.SimpleNamespace(
        blob_containers=types.SimpleNamespace(list=_list), file_shares=types.SimpleNamespace(list=_list)
    )
    account = {
        "id": "/subscriptions/sub-1/resourceGroups/rg-data/providers/Microsoft.Storage/storageAccounts/logs1",
        "name": "logs1",
    }
    clients = _clients(storage=storage)

    assert list(rm.iterate_blob_containers(clients, account)) == [{"id": "/c/logs1"}]
    assert list(rm.iterate_file_shares(clients, account)) == [{"id": "/c/logs1"}]
    assert calls == [("rg-data", "logs1"), ("rg-data", "logs1")]


def test_diagnostic_settings_accept_collection_or_pager() -> None:
    collection = types.SimpleNamespace(value=[_Model(id="/d1")])
    monitor = types.SimpleNamespace(diagnostic_settings=types.SimpleNamespace(list=lambda resource_id: collection))
    assert list(rm.iterate_diagnostic_settings(_clients(monitor=monitor), "/r")) == [{"id": "/d1"}]

    pager = types.SimpleNamespace(diagnostic_settings=types.SimpleNamespace(list=lambda resource_id: iter([{"id": "/d2"}])))
    assert list(rm.iterate_diagnostic_settings(_clients(monitor=pager), "/r")) == [{"id": "/d2"}]


def test_security_assessments_are_scoped_to_subscription() -> None:
    scopes = []

    def _list(scope):
        scopes.append(scope)
        return iter([])

    security = types.SimpleNamespace(assessments=types.SimpleNamespace(list=_list))
    assert list(rm.iterate_security_assessments(_clients(security=security))) == []
    assert scopes == ["/subscriptions/sub-1"]
