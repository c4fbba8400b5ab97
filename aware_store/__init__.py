"""
aware-store - asynchronous persistence layer for time-stamped device records.

Records arrive as named operation messages (insertData, updateData, deleteData,
getData) and are stored in PostgreSQL tables that are provisioned on demand:

- Bounded, explicitly managed connection pool (psycopg async)
- Idempotent table and index provisioning
- Batched inserts, keyed updates and set deletes
- Ordered time-range reads per device

Request parsing over HTTP and configuration-file loading live outside this
package; they talk to it through `OperationRouter` and `Settings`.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from aware_store.config import Settings, get_settings
from aware_store.domain.models import ConnectOptions, OperationRequest, Record, WriteResult
from aware_store.errors import (
    ConfigurationFailure,
    ConnectionFailure,
    RequestError,
    SchemaFailure,
    StatementFailure,
    StoreError,
    UnknownOperation,
)
from aware_store.infrastructure.pool import PoolManager
from aware_store.persistence import RecordReader, RecordWriter, SchemaProvisioner
from aware_store.router import Envelope, OperationRouter
from aware_store.service import StoreService
from aware_store.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Models
    "ConnectOptions",
    "OperationRequest",
    "Record",
    "WriteResult",
    # Errors
    "StoreError",
    "ConfigurationFailure",
    "ConnectionFailure",
    "SchemaFailure",
    "StatementFailure",
    "RequestError",
    "UnknownOperation",
    # Components
    "PoolManager",
    "SchemaProvisioner",
    "RecordWriter",
    "RecordReader",
    "OperationRouter",
    "Envelope",
    "StoreService",
    # Logging
    "configure_logging",
    "get_logger",
]
