"""
On-demand table provisioning.

Every record table shares one layout: a surrogate key, the float epoch timestamp,
the device UUID and the JSONB document, plus a composite index on
(timestamp, device_id) that serves the range reads and keyed updates/deletes.
"""

from __future__ import annotations

import asyncio
from typing import Dict

import psycopg
from psycopg import errors, sql

from aware_store.domain.models import INDEX_SUFFIX, check_table_name
from aware_store.errors import SchemaFailure
from aware_store.infrastructure.pool import PoolManager
from aware_store.utils.logging import get_logger

log = get_logger(__name__)

CREATE_TABLE = sql.SQL(
    "CREATE TABLE IF NOT EXISTS {table} ("
    '"_id" SERIAL PRIMARY KEY, '
    '"timestamp" DOUBLE PRECISION NOT NULL, '
    '"device_id" UUID NOT NULL, '
    '"data" JSONB NOT NULL)'
)

CREATE_INDEX = sql.SQL(
    'CREATE INDEX IF NOT EXISTS {index} ON {table} ("timestamp", "device_id")'
)

# Two sessions racing on IF NOT EXISTS can both pass the existence check; the
# loser then trips over the catalog entry the winner just created.
_CATALOG_RACE_ERRORS = (errors.DuplicateTable, errors.DuplicateObject, errors.UniqueViolation)


def index_name(table: str) -> str:
    return f"{table}{INDEX_SUFFIX}"


class SchemaProvisioner:
    """
    Creates record tables and their index, idempotently.

    Calls for the same table within this process are serialized; races with other
    processes are absorbed by treating "already exists" catalog errors as success.
    """

    def __init__(self, pool: PoolManager) -> None:
        self._pool = pool
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiting: Dict[str, int] = {}

    async def ensure_table(self, table: str) -> None:
        """
        Make sure `table` and its `<table>_timestamp_device` index exist.

        Raises
        ------
        SchemaFailure
            If either statement is rejected; the index is not attempted when the
            table statement fails.
        ConnectionFailure
            If no connection could be leased.
        """
        check_table_name(table)
        lock = self._locks.setdefault(table, asyncio.Lock())
        self._waiting[table] = self._waiting.get(table, 0) + 1
        try:
            async with lock:
                await self._provision(table)
        finally:
            # Locks only live while a call for that name is pending.
            self._waiting[table] -= 1
            if not self._waiting[table]:
                del self._waiting[table]
                del self._locks[table]

    async def _provision(self, table: str) -> None:
        async with self._pool.lease() as conn:
            await self._execute(conn, table, CREATE_TABLE.format(table=sql.Identifier(table)))
            log.debug("Created table", extra={"table": table})
            await self._execute(
                conn,
                table,
                CREATE_INDEX.format(
                    index=sql.Identifier(index_name(table)),
                    table=sql.Identifier(table),
                ),
            )
            log.debug("Created index", extra={"table": table, "index": index_name(table)})

    async def _execute(
        self, conn: psycopg.AsyncConnection, table: str, statement: sql.Composable
    ) -> None:
        try:
            await conn.execute(statement)
        except _CATALOG_RACE_ERRORS as exc:
            log.debug(
                "Schema object created concurrently",
                extra={"table": table, "detail": str(exc)},
            )
        except psycopg.Error as exc:
            raise SchemaFailure(table, str(exc)) from exc


__all__ = ["SchemaProvisioner", "CREATE_TABLE", "CREATE_INDEX", "index_name"]
