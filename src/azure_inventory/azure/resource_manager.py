from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Iterator, Mapping

from ..converters.common import resource_group_name
from ..util.errors import map_azure_error
from ..util.serialization import sdk_to_dict

Record = Dict[str, Any]


def _iterate(list_call: Callable[[], Iterable[Any]], context: str) -> Iterator[Record]:
    """
    Drain an SDK pager (ItemPaged pages through nextLink itself) as plain dicts.
    """
    try:
        for item in list_call():
            yield sdk_to_dict(item)
    except Exception as e:
        mapped = map_azure_error(e, context)
        if mapped:
            raise mapped from e
        raise


def iterate_resource_groups(clients: Any) -> Iterator[Record]:
    return _iterate(lambda: clients.resource().resource_groups.list(), "Azure error while listing resource groups")


def iterate_virtual_networks(clients: Any) -> Iterator[Record]:
    return _iterate(
        lambda: clients.network().virtual_networks.list_all(), "Azure error while listing virtual networks"
    )


def iterate_network_security_groups(clients: Any) -> Iterator[Record]:
    return _iterate(
        lambda: clients.network().network_security_groups.list_all(),
        "Azure error while listing network security groups",
    )


def iterate_network_interfaces(clients: Any) -> Iterator[Record]:
    return _iterate(
        lambda: clients.network().network_interfaces.list_all(), "Azure error while listing network interfaces"
    )


def iterate_public_ip_addresses(clients: Any) -> Iterator[Record]:
    return _iterate(
        lambda: clients.network().public_ip_addresses.list_all(), "Azure error while listing public IP addresses"
    )


def iterate_load_balancers(clients: Any) -> Iterator[Record]:
    return _iterate(lambda: clients.network().load_balancers.list_all(), "Azure error while listing load balancers")


def iterate_azure_firewalls(clients: Any) -> Iterator[Record]:
    return _iterate(lambda: clients.network().azure_firewalls.list_all(), "Azure error while listing Azure firewalls")


def iterate_virtual_machines(clients: Any) -> Iterator[Record]:
    return _iterate(
        lambda: clients.compute().virtual_machines.list_all(), "Azure error while listing virtual machines"
    )


def iterate_storage_accounts(clients: Any) -> Iterator[Record]:
    return _iterate(lambda: clients.storage().storage_accounts.list(), "Azure error while listing storage accounts")


def iterate_blob_containers(clients: Any, account: Mapping[str, Any]) -> Iterator[Record]:
    group = resource_group_name(account.get("id"))
    return _iterate(
        lambda: clients.storage().blob_containers.list(group, account["name"]),
        f"Azure error while listing blob containers of {account.get('name')}",
    )


def iterate_file_shares(clients: Any, account: Mapping[str, Any]) -> Iterator[Record]:
    group = resource_group_name(account.get("id"))
    return _iterate(
        lambda: clients.storage().file_shares.list(group, account["name"]),
        f"Azure error while listing file shares of {account.get('name')}",
    )


def iterate_postgresql_servers(clients: Any) -> Iterator[Record]:
    return _iterate(lambda: clients.postgresql().servers.list(), "Azure error while listing PostgreSQL servers")


def iterate_postgresql_databases(clients: Any, server: Mapping[str, Any]) -> Iterator[Record]:
    group = resource_group_name(server.get("id"))
    return _iterate(
        lambda: clients.postgresql().databases.list_by_server(group, server["name"]),
        f"Azure error while listing databases of PostgreSQL server {server.get('name')}",
    )


def _diagnostic_settings_list(clients: Any, resource_id: str) -> Iterable[Any]:
    result = clients.monitor().diagnostic_settings.list(resource_id)
    # Older API versions return a collection object instead of a pager.
    value = getattr(result, "value", None)
    return value if value is not None else result


def iterate_diagnostic_settings(clients: Any, resource_id: str) -> Iterator[Record]:
    return _iterate(
        lambda: _diagnostic_settings_list(clients, resource_id),
        f"Azure error while listing diagnostic settings of {resource_id}",
    )


def iterate_security_assessments(clients: Any) -> Iterator[Record]:
    scope = f"/subscriptions/{clients.subscription_id}"
    return _iterate(
        lambda: clients.security().assessments.list(scope=scope), "Azure error while listing security assessments"
    )
