from __future__ import annotations

from typing import Any, Callable, Dict

from azure.mgmt.compute import ComputeManagementClient
from azure.mgmt.monitor import MonitorManagementClient
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.rdbms.postgresql import PostgreSQLManagementClient
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.security import SecurityCenter
from azure.mgmt.storage import StorageManagementClient

from ..auth.providers import AuthContext, require_subscription_id


class AzureClients:
    """
    Lazily built Resource Manager SDK clients, one per service for the run.
    The SDK pipelines carry their own retry policy.
    """

    def __init__(self, ctx: AuthContext) -> None:
        self._ctx = ctx
        self._cache: Dict[str, Any] = {}

    @property
    def subscription_id(self) -> str:
        return require_subscription_id(self._ctx)

    def _get(self, name: str, factory: Callable[[Any, str], Any]) -> Any:
        client = self._cache.get(name)
        if client is None:
            client = factory(self._ctx.credential, self.subscription_id)
            self._cache[name] = client
        return client

    def resource(self) -> Any:
        return self._get("resource", ResourceManagementClient)

    def network(self) -> Any:
        return self._get("network", NetworkManagementClient)

    def compute(self) -> Any:
        return self._get("compute", ComputeManagementClient)

    def storage(self) -> Any:
        return self._get("storage", StorageManagementClient)

    def monitor(self) -> Any:
        return self._get("monitor", MonitorManagementClient)

    def postgresql(self) -> Any:
        return self._get("postgresql", PostgreSQLManagementClient)

    def security(self) -> Any:
        return self._get("security", SecurityCenter)

    def close(self) -> None:
        for client in self._cache.values():
            close = getattr(client, "close", None)
            if callable(close):
                close()
        self._cache.clear()
