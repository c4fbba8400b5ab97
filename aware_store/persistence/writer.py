"""
Write path: batched insert, keyed update and set delete of device records.

A row is identified by (device_id, timestamp). All statements are parameterized;
the table name is composed as a quoted identifier. Each operation holds one
connection lease for its whole batch.
"""

from __future__ import annotations

from typing import Iterator, Optional, Sequence

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb

from aware_store.domain.models import Record, WriteResult, check_table_name
from aware_store.errors import StatementFailure
from aware_store.infrastructure.pool import PoolManager
from aware_store.persistence.schema import SchemaProvisioner
from aware_store.utils.logging import get_logger

log = get_logger(__name__)

INSERT_ROWS = sql.SQL('INSERT INTO {table} ("device_id", "timestamp", "data") VALUES {values}')
ROW_PLACEHOLDER = sql.SQL("(%s, %s, %s)")
UPDATE_ROW = sql.SQL(
    'UPDATE {table} SET "data" = %s WHERE "device_id" = %s AND "timestamp" = %s'
)
DELETE_ROWS = sql.SQL('DELETE FROM {table} WHERE "device_id" = %s AND "timestamp" = ANY(%s)')

# The protocol caps a statement at 65535 bind parameters; each row binds three.
MAX_ROWS_PER_STATEMENT = 20_000


def _chunks(records: Sequence[Record], size: int) -> Iterator[Sequence[Record]]:
    for offset in range(0, len(records), size):
        yield records[offset : offset + size]


def _result(
    operation: str,
    table: str,
    device_id: str,
    rows: int,
    affected: int = 0,
    failed: int = 0,
    error: Optional[str] = None,
) -> WriteResult:
    return WriteResult(
        operation=operation,
        table=table,
        device_id=device_id,
        rows=rows,
        affected=affected,
        failed=failed,
        error=error,
    )


class RecordWriter:
    """
    Applies record batches to a table.

    Inserts provision the table first. Updates and deletes assume it exists; a
    missing table surfaces as a `StatementFailure`.
    """

    def __init__(
        self,
        pool: PoolManager,
        provisioner: SchemaProvisioner,
        max_rows_per_statement: int = MAX_ROWS_PER_STATEMENT,
    ) -> None:
        self._pool = pool
        self._provisioner = provisioner
        self.max_rows_per_statement = max_rows_per_statement

    async def insert(self, table: str, device_id: str, records: Sequence[Record]) -> WriteResult:
        """
        Insert a batch of records for one device.

        Raises
        ------
        SchemaFailure
            If the table could not be provisioned; nothing is written.
        ConnectionFailure
            If no connection could be leased.
        StatementFailure
            If the store rejected the insert.
        """
        check_table_name(table)
        if not records:
            return _result("insert", table, device_id, 0)

        await self._provisioner.ensure_table(table)

        affected = 0
        async with self._pool.lease() as conn:
            for chunk in _chunks(records, self.max_rows_per_statement):
                query = INSERT_ROWS.format(
                    table=sql.Identifier(table),
                    values=sql.SQL(", ").join([ROW_PLACEHOLDER] * len(chunk)),
                )
                params = []
                for record in chunk:
                    params.extend((device_id, record.timestamp, Jsonb(record.payload)))
                try:
                    cur = await conn.execute(query, params)
                except psycopg.Error as exc:
                    raise StatementFailure(
                        f"Insert into '{table}' failed after {affected} rows: {exc}"
                    ) from exc
                affected += cur.rowcount

        log.info(
            f"{device_id} inserted to {table}: {len(records)} records",
            extra={"table": table, "device_id": device_id, "rows": len(records)},
        )
        return _result("insert", table, device_id, len(records), affected=affected)

    async def update(self, table: str, device_id: str, records: Sequence[Record]) -> WriteResult:
        """
        Overwrite the stored document of each record, matched by (device_id, timestamp).

        Records are applied one statement at a time, in order, on one lease. A
        rejected record is logged and counted in `failed`; the rest still run.

        Raises
        ------
        ConnectionFailure
            If no connection could be leased; nothing is executed.
        """
        check_table_name(table)
        if not records:
            return _result("update", table, device_id, 0)

        query = UPDATE_ROW.format(table=sql.Identifier(table))
        affected = failed = 0
        async with self._pool.lease() as conn:
            for record in records:
                try:
                    cur = await conn.execute(
                        query, (Jsonb(record.payload), device_id, record.timestamp)
                    )
                except psycopg.Error as exc:
                    failed += 1
                    log.error(
                        "Failed to process update",
                        extra={
                            "table": table,
                            "device_id": device_id,
                            "timestamp": record.timestamp,
                            "error": str(exc),
                        },
                    )
                    continue
                affected += cur.rowcount
                log.debug(
                    f"{device_id} updated {table}",
                    extra={"table": table, "device_id": device_id, "timestamp": record.timestamp},
                )

        log.info(
            f"{device_id} updated {table}: {len(records) - failed} records",
            extra={"table": table, "device_id": device_id, "rows": len(records), "failed": failed},
        )
        error = f"{failed} of {len(records)} updates failed" if failed else None
        return _result(
            "update", table, device_id, len(records), affected=affected, failed=failed, error=error
        )

    async def delete(self, table: str, device_id: str, records: Sequence[Record]) -> WriteResult:
        """
        Delete the device's rows whose timestamp appears in the batch.

        Raises
        ------
        ConnectionFailure
            If no connection could be leased.
        StatementFailure
            If the store rejected the delete.
        """
        check_table_name(table)
        if not records:
            return _result("delete", table, device_id, 0)

        timestamps = [record.timestamp for record in records]
        query = DELETE_ROWS.format(table=sql.Identifier(table))
        async with self._pool.lease() as conn:
            try:
                cur = await conn.execute(query, (device_id, timestamps))
            except psycopg.Error as exc:
                raise StatementFailure(f"Delete from '{table}' failed: {exc}") from exc

        log.info(
            f"{device_id} deleted from {table}: {len(records)} records",
            extra={"table": table, "device_id": device_id, "rows": len(records)},
        )
        return _result("delete", table, device_id, len(records), affected=cur.rowcount)


__all__ = ["RecordWriter", "MAX_ROWS_PER_STATEMENT"]
