"""
Domain package for aware-store.

Exports the record, request and connection-option models used by the router,
persistence paths and pool. Keep this package focused on data definitions.
"""

from aware_store.domain.models import (
    ConnectOptions,
    OperationRequest,
    Record,
    SslMode,
    WriteResult,
    check_table_name,
    resolve_ssl_mode,
)

__all__ = [
    "ConnectOptions",
    "OperationRequest",
    "Record",
    "SslMode",
    "WriteResult",
    "check_table_name",
    "resolve_ssl_mode",
]
