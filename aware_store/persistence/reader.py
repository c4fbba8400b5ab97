"""
Read path: ordered time-range retrieval of one device's records.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from aware_store.domain.models import check_table_name
from aware_store.errors import StatementFailure
from aware_store.infrastructure.pool import PoolManager
from aware_store.utils.logging import get_logger

log = get_logger(__name__)

SELECT_RANGE = sql.SQL(
    'SELECT "_id", "timestamp", "device_id", "data" FROM {table} '
    'WHERE "device_id" = %s AND "timestamp" BETWEEN %s AND %s '
    'ORDER BY "timestamp" ASC'
)


def _to_document(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "_id": row["_id"],
        "timestamp": row["timestamp"],
        "device_id": str(row["device_id"]),
        "data": row["data"],
    }


class RecordReader:
    """Fetches stored rows for a device within an inclusive timestamp range."""

    def __init__(self, pool: PoolManager) -> None:
        self._pool = pool

    async def query(
        self, table: str, device_id: str, start: float, end: float
    ) -> List[Dict[str, Any]]:
        """
        Return the device's rows with start <= timestamp <= end, oldest first.

        Raises
        ------
        ConnectionFailure
            If no connection could be leased.
        StatementFailure
            If the store rejected the query (including a table that does not exist).
        """
        check_table_name(table)
        query = SELECT_RANGE.format(table=sql.Identifier(table))
        async with self._pool.lease() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                try:
                    await cur.execute(query, (device_id, start, end))
                    rows = await cur.fetchall()
                except psycopg.Error as exc:
                    log.error(
                        "Failed to retrieve data",
                        extra={"table": table, "device_id": device_id, "error": str(exc)},
                    )
                    raise StatementFailure(f"Query on '{table}' failed: {exc}") from exc

        documents = [_to_document(row) for row in rows]
        log.info(
            f"{device_id} : retrieved {len(documents)} records from {table}",
            extra={"table": table, "device_id": device_id, "rows": len(documents)},
        )
        return documents


__all__ = ["RecordReader", "SELECT_RANGE"]
