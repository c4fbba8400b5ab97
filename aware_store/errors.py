"""
Exception hierarchy for aware-store.

Driver-level errors (psycopg, psycopg_pool) are translated into these types at the
persistence boundary so callers never depend on the driver.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for all aware-store errors."""


class ConfigurationFailure(StoreError):
    """Connection parameters are missing or malformed. Fatal at startup."""


class ConnectionFailure(StoreError):
    """The pool could not hand out a connection (unreachable, timed out, or closed)."""


class SchemaFailure(StoreError):
    """A table or index creation statement was rejected."""

    def __init__(self, table: str, message: str) -> None:
        super().__init__(f"Provisioning of table '{table}' failed: {message}")
        self.table = table


class StatementFailure(StoreError):
    """A data-manipulation or query statement was rejected by the store."""


class RequestError(StoreError):
    """An incoming operation request could not be parsed."""


class UnknownOperation(StoreError):
    """No handler is registered for the requested operation name."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"Unknown operation '{operation}'")
        self.operation = operation


__all__ = [
    "StoreError",
    "ConfigurationFailure",
    "ConnectionFailure",
    "SchemaFailure",
    "StatementFailure",
    "RequestError",
    "UnknownOperation",
]
