from __future__ import annotations

import json
from types import SimpleNamespace
from typing import Any

import pytest
from psycopg.conninfo import conninfo_to_dict

from aware_store.domain.models import (
    INDEX_SUFFIX,
    MAX_IDENTIFIER_BYTES,
    MAX_TABLE_NAME_BYTES,
    ConnectOptions,
    OperationRequest,
    Record,
    SslMode,
    check_table_name,
    resolve_ssl_mode,
)
from aware_store.errors import ConfigurationFailure, RequestError

DEVICE_ID = "2b4f3c1e-6a0d-4c36-9e57-0c0a2f3b1d11"
CA_PATH = "/etc/aware/ca.pem"
KEY_PATH = "/etc/aware/client.key"
CERT_PATH = "/etc/aware/client.pem"


def _settings(**overrides: Any) -> SimpleNamespace:
    values = {
        "database_host": "db.internal",
        "database_port": 5433,
        "database_name": "aware",
        "database_user": "micro",
        "database_pwd": "s3cret",
        "database_ssl_mode": None,
        "database_ssl_path_ca_cert_pem": None,
        "database_ssl_path_client_key_pem": None,
        "database_ssl_path_client_cert_pem": None,
        "database_statement_timeout_ms": 0,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_record_keeps_whole_entry_as_payload() -> None:
    record = Record.from_entry({"timestamp": 1000, "v": 1})

    assert record.timestamp == 1000.0
    assert record.payload == {"timestamp": 1000, "v": 1}


def test_request_decodes_string_encoded_data() -> None:
    entries = [{"timestamp": 1.5, "v": 1}, {"timestamp": 2.5, "v": 2}]
    request = OperationRequest.from_message(
        "insertData", {"device_id": DEVICE_ID, "table": "battery", "data": json.dumps(entries)}
    )

    assert request.operation == "insertData"
    assert [r.timestamp for r in request.data] == [1.5, 2.5]
    assert request.data[1].payload == entries[1]


def test_request_without_data_has_empty_batch() -> None:
    request = OperationRequest.from_message(
        "getData", {"device_id": DEVICE_ID, "table": "battery", "start": 0, "end": 10}
    )

    assert request.data == []
    assert request.time_range() == (0.0, 10.0)


@pytest.mark.parametrize(
    "body",
    [
        {"device_id": DEVICE_ID, "table": "battery", "data": "not json"},
        {"device_id": DEVICE_ID, "table": "battery", "data": '{"timestamp": 1}'},
        {"device_id": DEVICE_ID, "table": "battery", "data": '[{"v": 1}]'},
        {"table": "battery", "data": "[]"},
        {"device_id": DEVICE_ID, "table": "", "data": "[]"},
    ],
)
def test_malformed_request_raises_request_error(body: dict) -> None:
    with pytest.raises(RequestError):
        OperationRequest.from_message("insertData", body)


def test_time_range_requires_both_bounds() -> None:
    request = OperationRequest.from_message(
        "getData", {"device_id": DEVICE_ID, "table": "battery", "start": 0}
    )
    with pytest.raises(RequestError, match="start and end"):
        request.time_range()


def test_check_table_name_accepts_quoting_sensitive_names() -> None:
    assert check_table_name('odd "name"; DROP TABLE x') == 'odd "name"; DROP TABLE x'


def test_check_table_name_leaves_room_for_the_index_suffix() -> None:
    name = "a" * MAX_TABLE_NAME_BYTES

    assert check_table_name(name) == name
    assert MAX_TABLE_NAME_BYTES == 46
    assert len((name + INDEX_SUFFIX).encode("utf-8")) == MAX_IDENTIFIER_BYTES


@pytest.mark.parametrize("name", ["", "a" * 47, "\u00e9" * 24, "bad\x00name"])
def test_check_table_name_rejects_unusable_identifiers(name: str) -> None:
    with pytest.raises(RequestError):
        check_table_name(name)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, SslMode.DISABLE),
        ("", SslMode.DISABLE),
        ("disable", SslMode.DISABLE),
        ("disabled", SslMode.DISABLE),
        ("prefer", SslMode.PREFER),
        ("Preferred", SslMode.PREFER),
        ("require", SslMode.REQUIRE),
        ("verify-full", SslMode.VERIFY_FULL),
    ],
)
def test_resolve_ssl_mode(value: str, expected: SslMode) -> None:
    assert resolve_ssl_mode(value) is expected


def test_resolve_ssl_mode_rejects_unknown_values() -> None:
    with pytest.raises(ConfigurationFailure, match="allow"):
        resolve_ssl_mode("allow")


def test_connect_options_without_encryption_ignore_certificates() -> None:
    options = ConnectOptions.from_settings(
        _settings(database_ssl_mode="disabled", database_ssl_path_ca_cert_pem=CA_PATH)
    )

    assert options.sslmode is SslMode.DISABLE
    assert options.sslrootcert is None


def test_connect_options_prefer_installs_trust_anchor_only() -> None:
    options = ConnectOptions.from_settings(
        _settings(database_ssl_mode="prefer", database_ssl_path_ca_cert_pem=CA_PATH)
    )

    assert options.sslmode is SslMode.PREFER
    assert options.sslrootcert == CA_PATH
    assert options.sslkey is None
    assert options.sslcert is None


def test_connect_options_prefer_with_client_key_installs_key_pair() -> None:
    options = ConnectOptions.from_settings(
        _settings(
            database_ssl_mode="preferred",
            database_ssl_path_ca_cert_pem=CA_PATH,
            database_ssl_path_client_key_pem=KEY_PATH,
            database_ssl_path_client_cert_pem=CERT_PATH,
        )
    )

    assert (options.sslrootcert, options.sslkey, options.sslcert) == (CA_PATH, KEY_PATH, CERT_PATH)


def test_connect_options_client_key_needs_trust_anchor() -> None:
    options = ConnectOptions.from_settings(
        _settings(
            database_ssl_mode="prefer",
            database_ssl_path_client_key_pem=KEY_PATH,
            database_ssl_path_client_cert_pem=CERT_PATH,
        )
    )

    assert options.sslkey is None
    assert options.sslcert is None


def test_connect_options_client_key_without_certificate_is_rejected() -> None:
    with pytest.raises(ConfigurationFailure, match="client_cert"):
        ConnectOptions.from_settings(
            _settings(
                database_ssl_mode="prefer",
                database_ssl_path_ca_cert_pem=CA_PATH,
                database_ssl_path_client_key_pem=KEY_PATH,
            )
        )


def test_conninfo_maps_every_option() -> None:
    options = ConnectOptions.from_settings(
        _settings(
            database_ssl_mode="prefer",
            database_ssl_path_ca_cert_pem=CA_PATH,
            database_statement_timeout_ms=1500,
        )
    )

    params = conninfo_to_dict(options.conninfo())

    assert params["host"] == "db.internal"
    assert params["port"] == "5433"
    assert params["dbname"] == "aware"
    assert params["user"] == "micro"
    assert params["password"] == "s3cret"
    assert params["sslmode"] == "prefer"
    assert params["sslrootcert"] == CA_PATH
    assert params["options"] == "-c statement_timeout=1500"
    assert "sslkey" not in params


def test_describe_hides_password() -> None:
    options = ConnectOptions.from_settings(_settings())

    assert "s3cret" not in options.describe()
    assert "s3cret" not in repr(options)
