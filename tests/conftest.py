"""
Pytest configuration for aware-store.

Provides fixtures for:
- Settings override for integration tests
- Database reachability checks
- A started `StoreService` and throwaway table names
"""

from __future__ import annotations

import os
import uuid
from typing import AsyncIterator, Iterator

import psycopg
import pytest
import pytest_asyncio
from psycopg import sql

from aware_store.config import Settings
from aware_store.domain.models import ConnectOptions
from aware_store.service import StoreService


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        database_host=os.getenv("DATABASE_HOST", "localhost"),
        database_port=int(os.getenv("DATABASE_PORT", "5432")),
        database_user=os.getenv("DATABASE_USER", "postgres"),
        database_pwd=os.getenv("DATABASE_PWD", "postgres"),
        database_name=os.getenv("DATABASE_NAME", "aware"),
        database_ssl_mode=os.getenv("DATABASE_SSL_MODE", "disable"),
        database_pool_timeout=5.0,
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_conninfo(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return ConnectOptions.from_settings(test_settings).conninfo()


@pytest.fixture(scope="session")
def db_connection_available(test_conninfo: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_conninfo, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def table_name(test_conninfo: str, db_connection_available: bool) -> Iterator[str]:
    """
    A fresh table name, dropped after the test.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    name = f"test_{uuid.uuid4().hex[:12]}"
    yield name
    with psycopg.connect(test_conninfo, autocommit=True) as conn:
        conn.execute(sql.SQL("DROP TABLE IF EXISTS {}").format(sql.Identifier(name)))


@pytest_asyncio.fixture
async def service(
    test_settings: Settings, db_connection_available: bool
) -> AsyncIterator[StoreService]:
    """
    A started store service; stopped (drained, pool closed) after the test.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    store = StoreService.from_settings(test_settings)
    await store.start()
    try:
        yield store
    finally:
        await store.stop()
