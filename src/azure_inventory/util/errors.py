from __future__ import annotations

from enum import IntEnum

from azure.core.exceptions import AzureError


class ExitCode(IntEnum):
    OK = 0
    CONFIG_ERROR = 2
    AUTH_ERROR = 3
    AZURE_ERROR = 4
    RUNTIME_ERROR = 5


class InventoryError(Exception):
    """Base error for the Azure inventory connector."""


class ConfigError(InventoryError):
    """Raised for configuration, argument or step-selection issues."""


class AuthResolutionError(InventoryError):
    """Raised when Azure credentials cannot be resolved."""


class AzureClientError(InventoryError):
    """Raised when Resource Manager or Microsoft Graph calls fail in a non-retriable way."""


class ExportError(InventoryError):
    """Raised when writing run artifacts fails."""


class InvalidRecordError(InventoryError):
    """
    Raised by converters when a source record lacks a required field (its id).
    Steps catch it per record: the record is skipped, the run continues.
    """


class DuplicateKeyError(InventoryError):
    """Raised when an entity or relationship _key is published twice in one run."""

    def __init__(self, key: str, kind: str = "entity") -> None:
        super().__init__(f"Duplicate {kind} _key: {key}")
        self.key = key
        self.kind = kind


def as_exit_code(exc: BaseException) -> int:
    if isinstance(exc, (ConfigError, ValueError)):
        return int(ExitCode.CONFIG_ERROR)
    if isinstance(exc, AuthResolutionError):
        return int(ExitCode.AUTH_ERROR)
    if isinstance(exc, AzureClientError):
        return int(ExitCode.AZURE_ERROR)
    if isinstance(exc, (ExportError, InventoryError)):
        return int(ExitCode.RUNTIME_ERROR)
    return 1


def is_azure_error(exc: BaseException) -> bool:
    """
    Return True if the exception comes from azure-core or one of the azure-mgmt SDKs.
    """
    if isinstance(exc, AzureError):
        return True
    return exc.__class__.__module__.startswith("azure.")


def map_azure_error(exc: BaseException, context: str) -> AzureClientError | None:
    """
    Wrap Azure SDK errors with AzureClientError for consistent exit codes.
    """
    if not is_azure_error(exc):
        return None
    return AzureClientError(f"{context}: {exc}")
