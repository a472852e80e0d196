from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from azure.core.exceptions import ClientAuthenticationError
from azure.identity import ClientSecretCredential, DefaultAzureCredential

from ..util.errors import map_azure_error

ARM_SCOPE = "https://management.azure.com/.default"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"
AUTH_METHODS = {"auto", "default", "client_secret"}


@dataclass(frozen=True)
class AuthContext:
    """
    Resolved credential plus the directory/subscription it is scoped to.
    The credential is any azure-identity TokenCredential.
    """

    method: str  # default|client_secret (resolved final)
    credential: Any
    directory_id: Optional[str]
    subscription_id: Optional[str]


class AuthError(RuntimeError):
    pass


def resolve_auth(
    method: str,
    directory_id: Optional[str],
    client_id: Optional[str],
    client_secret: Optional[str],
    subscription_id: Optional[str] = None,
) -> AuthContext:
    """
    Resolve auth according to requested method.
    - client_secret: service principal (directory id, client id and secret required)
    - default: DefaultAzureCredential chain (env, managed identity, Azure CLI, ...)
    - auto: client_secret when all three values are present, else default
    """
    method = (method or "auto").lower()
    if method not in AUTH_METHODS:
        raise AuthError(f"Unsupported auth method: {method}")
    if method == "auto":
        method = "client_secret" if (directory_id and client_id and client_secret) else "default"

    if method == "client_secret":
        missing = [
            name
            for name, value in (
                ("directory_id", directory_id),
                ("client_id", client_id),
                ("client_secret", client_secret),
            )
            if not value
        ]
        if missing:
            raise AuthError(f"client_secret auth requires: {', '.join(missing)}")
        try:
            credential = ClientSecretCredential(
                tenant_id=directory_id,  # type: ignore[arg-type]
                client_id=client_id,  # type: ignore[arg-type]
                client_secret=client_secret,  # type: ignore[arg-type]
            )
        except ValueError as e:
            raise AuthError(f"Invalid service principal settings: {e}") from e
        return AuthContext("client_secret", credential, directory_id, subscription_id)

    kwargs = {}
    if directory_id:
        kwargs["additionally_allowed_tenants"] = [directory_id]
    credential = DefaultAzureCredential(**kwargs)
    return AuthContext("default", credential, directory_id, subscription_id)


def validate_credential(ctx: AuthContext, scope: str = ARM_SCOPE) -> None:
    """
    Request one token; raises AuthError when the credential is rejected.
    """
    try:
        ctx.credential.get_token(scope)
    except ClientAuthenticationError as e:
        raise AuthError(f"Credential rejected for {scope}: {e.message}") from e
    except Exception as e:
        mapped = map_azure_error(e, f"Azure error while requesting a token for {scope}")
        if mapped:
            raise mapped from e
        raise


def require_subscription_id(ctx: AuthContext) -> str:
    if not ctx.subscription_id:
        raise AuthError("A subscription id is required for Resource Manager steps (--subscription)")
    return ctx.subscription_id
