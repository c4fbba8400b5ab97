"""
Domain models for aware-store.

Defines the record, request and connection-option shapes shared by the router,
the persistence paths and the pool. Incoming entries are stored verbatim, so the
models only coerce types; they do not validate payload contents.
"""
from __future__ import annotations

import enum
import json
from typing import Any, Dict, List, Mapping, Optional, Tuple, TypedDict

from psycopg.conninfo import make_conninfo
from pydantic import BaseModel, Field, ValidationError, field_validator

from aware_store.errors import ConfigurationFailure, RequestError

# PostgreSQL truncates identifiers longer than NAMEDATALEN - 1 bytes.
MAX_IDENTIFIER_BYTES = 63

# Suffix of the per-table index name; table names leave room for it so the
# index name is never truncated into a collision with the table itself.
INDEX_SUFFIX = "_timestamp_device"
MAX_TABLE_NAME_BYTES = MAX_IDENTIFIER_BYTES - len(INDEX_SUFFIX)


def check_table_name(name: str) -> str:
    """
    Reject table names that cannot be used as a PostgreSQL identifier.

    Names are quoted with the server's identifier rules when composed into SQL,
    so any other character is allowed.
    """
    if not isinstance(name, str) or not name:
        raise RequestError("Table name must be a non-empty string")
    if "\x00" in name:
        raise RequestError("Table name must not contain NUL characters")
    if len(name.encode("utf-8")) > MAX_TABLE_NAME_BYTES:
        raise RequestError(
            f"Table name '{name}' exceeds {MAX_TABLE_NAME_BYTES} bytes"
        )
    return name


class Record(BaseModel):
    """
    One sensed observation as received from a device.

    `payload` is the complete entry, timestamp included; it is what ends up in the
    `data` column.
    """

    timestamp: float = Field(..., description="Epoch timestamp; part of the row identity.")
    payload: Dict[str, Any] = Field(..., description="The entry, stored verbatim.")

    model_config = {"frozen": True}

    @classmethod
    def from_entry(cls, entry: Mapping[str, Any]) -> "Record":
        return cls(timestamp=entry.get("timestamp"), payload=dict(entry))


class OperationRequest(BaseModel):
    """
    A decoded operation message.

    `data` arrives as a string-encoded JSON array of entries (or an already decoded
    list); `start`/`end` are only present for range reads.
    """

    operation: str
    device_id: str
    table: str
    data: List[Record] = Field(default_factory=list)
    start: Optional[float] = None
    end: Optional[float] = None

    model_config = {"frozen": True}

    @field_validator("table")
    @classmethod
    def _table_is_identifier(cls, value: str) -> str:
        try:
            return check_table_name(value)
        except RequestError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("data", mode="before")
    @classmethod
    def _decode_entries(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (str, bytes)):
            value = json.loads(value)
        if not isinstance(value, list):
            raise ValueError("data must be a JSON array of entries")
        return [
            {"timestamp": entry.get("timestamp"), "payload": dict(entry)}
            if isinstance(entry, Mapping)
            else entry
            for entry in value
        ]

    @classmethod
    def from_message(cls, operation: str, body: Mapping[str, Any]) -> "OperationRequest":
        """
        Build a request from an operation name and a message body.

        Raises
        ------
        RequestError
            If the body is missing fields or carries undecodable data.
        """
        try:
            return cls(operation=operation, **dict(body))
        except (ValidationError, ValueError, TypeError) as exc:
            raise RequestError(f"Malformed '{operation}' request: {exc}") from exc

    def time_range(self) -> Tuple[float, float]:
        if self.start is None or self.end is None:
            raise RequestError(f"'{self.operation}' request requires start and end")
        return self.start, self.end


class SslMode(str, enum.Enum):
    DISABLE = "disable"
    PREFER = "prefer"
    REQUIRE = "require"
    VERIFY_CA = "verify-ca"
    VERIFY_FULL = "verify-full"


_SSL_MODE_ALIASES: Dict[str, SslMode] = {
    "": SslMode.DISABLE,
    "disable": SslMode.DISABLE,
    "disabled": SslMode.DISABLE,
    "prefer": SslMode.PREFER,
    "preferred": SslMode.PREFER,
    "require": SslMode.REQUIRE,
    "required": SslMode.REQUIRE,
    "verify-ca": SslMode.VERIFY_CA,
    "verify-full": SslMode.VERIFY_FULL,
}


def resolve_ssl_mode(value: Optional[str]) -> SslMode:
    """
    Map a configured encryption mode onto a libpq `sslmode`.

    Raises
    ------
    ConfigurationFailure
        For values outside the supported set.
    """
    if value is None:
        return SslMode.DISABLE
    try:
        return _SSL_MODE_ALIASES[value.strip().lower()]
    except KeyError:
        supported = ", ".join(sorted(k for k in _SSL_MODE_ALIASES if k))
        raise ConfigurationFailure(
            f"Unsupported database_ssl_mode '{value}'. Supported: {supported}"
        ) from None


class ConnectOptions(BaseModel):
    """
    Immutable description of how the pool opens connections.
    """

    host: str
    port: int
    dbname: str
    user: str
    password: str = Field(..., repr=False)
    sslmode: SslMode = SslMode.DISABLE
    sslrootcert: Optional[str] = None
    sslkey: Optional[str] = None
    sslcert: Optional[str] = None
    statement_timeout_ms: int = 0

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls, settings: Any) -> "ConnectOptions":
        """
        Resolve connection options from settings, once, at startup.

        With encryption enabled, the CA certificate becomes the trust anchor when
        configured, and the client key/certificate pair is only installed on top
        of a configured CA.

        Under `prefer` libpq loads the CA but does not check the server certificate
        against it; use `verify-ca` or `verify-full` when the server must be
        authenticated. With a CA configured, `require` verifies like `verify-ca`.
        """
        sslmode = resolve_ssl_mode(settings.database_ssl_mode)
        sslrootcert = sslkey = sslcert = None
        if sslmode is not SslMode.DISABLE and settings.database_ssl_path_ca_cert_pem:
            sslrootcert = settings.database_ssl_path_ca_cert_pem
            if settings.database_ssl_path_client_key_pem:
                if not settings.database_ssl_path_client_cert_pem:
                    raise ConfigurationFailure(
                        "database_ssl_path_client_key_pem requires "
                        "database_ssl_path_client_cert_pem"
                    )
                sslkey = settings.database_ssl_path_client_key_pem
                sslcert = settings.database_ssl_path_client_cert_pem

        try:
            return cls(
                host=settings.database_host,
                port=settings.database_port,
                dbname=settings.database_name,
                user=settings.database_user,
                password=settings.database_pwd,
                sslmode=sslmode,
                sslrootcert=sslrootcert,
                sslkey=sslkey,
                sslcert=sslcert,
                statement_timeout_ms=settings.database_statement_timeout_ms,
            )
        except ValidationError as exc:
            raise ConfigurationFailure(f"Invalid connection options: {exc}") from exc

    def conninfo(self) -> str:
        """Render a libpq connection string."""
        params: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "sslmode": self.sslmode.value,
        }
        for key in ("sslrootcert", "sslkey", "sslcert"):
            value = getattr(self, key)
            if value:
                params[key] = value
        if self.statement_timeout_ms:
            params["options"] = f"-c statement_timeout={self.statement_timeout_ms}"
        return make_conninfo(**params)

    def describe(self) -> str:
        """Connection summary without credentials, for logs and the CLI."""
        return f"{self.user}@{self.host}:{self.port}/{self.dbname} sslmode={self.sslmode.value}"


class WriteResult(TypedDict, total=False):
    """
    Outcome of one write operation.

    `rows` is the batch size; `affected` is what the store reported; `failed`
    counts statements that were rejected.
    """

    operation: str
    table: str
    device_id: str
    rows: int
    affected: int
    failed: int
    error: Optional[str]


__all__ = [
    "MAX_IDENTIFIER_BYTES",
    "MAX_TABLE_NAME_BYTES",
    "INDEX_SUFFIX",
    "check_table_name",
    "Record",
    "OperationRequest",
    "SslMode",
    "resolve_ssl_mode",
    "ConnectOptions",
    "WriteResult",
]
