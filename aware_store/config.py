"""
Configuration settings for aware-store.

Uses Pydantic Settings to load environment variables for the database connection,
the connection pool, and logging. Field names match the keys of the `server`
block produced by the deployment's configuration file, so the same model can be
built from the environment or from that block via `Settings.from_server_config`.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from aware_store.errors import ConfigurationFailure


class Settings(BaseSettings):
    # Database
    database_host: str = Field("localhost", alias="DATABASE_HOST")
    database_port: int = Field(5432, alias="DATABASE_PORT")
    database_name: str = Field("aware", alias="DATABASE_NAME")
    database_user: str = Field("postgres", alias="DATABASE_USER")
    database_pwd: str = Field("postgres", alias="DATABASE_PWD")

    # Encryption
    database_ssl_mode: Optional[str] = Field(None, alias="DATABASE_SSL_MODE")
    database_ssl_path_ca_cert_pem: Optional[str] = Field(
        None, alias="DATABASE_SSL_PATH_CA_CERT_PEM"
    )
    database_ssl_path_client_key_pem: Optional[str] = Field(
        None, alias="DATABASE_SSL_PATH_CLIENT_KEY_PEM"
    )
    database_ssl_path_client_cert_pem: Optional[str] = Field(
        None, alias="DATABASE_SSL_PATH_CLIENT_CERT_PEM"
    )

    # Pool
    database_pool_max_size: int = Field(5, ge=1, alias="DATABASE_POOL_MAX_SIZE")
    database_pool_timeout: float = Field(30.0, gt=0, alias="DATABASE_POOL_TIMEOUT")
    database_statement_timeout_ms: int = Field(0, ge=0, alias="DATABASE_STATEMENT_TIMEOUT_MS")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def from_server_config(cls, server: Mapping[str, Any]) -> "Settings":
        """
        Build settings from a `server` configuration block.

        Keys use the field names (``database_host``, ``database_pwd``...). Unknown
        keys are ignored; missing keys fall back to the environment and defaults.

        Raises
        ------
        ConfigurationFailure
            If a value cannot be coerced to its field type.
        """
        try:
            return cls(**dict(server))
        except ValidationError as exc:
            raise ConfigurationFailure(f"Invalid server configuration: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationFailure(f"Invalid environment configuration: {exc}") from exc


__all__ = ["Settings", "get_settings"]
