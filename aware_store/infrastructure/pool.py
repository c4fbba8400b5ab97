"""
Connection pool management for aware-store.

`PoolManager` owns the bounded psycopg async pool every persistence component
leases connections from. It is an explicit handle: build it once at startup from
`ConnectOptions`, pass it to the components that need it, and close it at
shutdown. Driver errors are translated into `ConnectionFailure`.

Includes retry logic for transient failures while opening the pool using tenacity.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import psycopg
from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool, PoolClosed, PoolTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from aware_store.domain.models import ConnectOptions
from aware_store.errors import ConnectionFailure
from aware_store.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_POOL_SIZE = 5
DEFAULT_CLOSE_TIMEOUT = 5.0


class PoolManager:
    """
    Bounded pool of autocommit connections to PostgreSQL.

    Acquisitions beyond `max_size` queue inside the pool until a connection is
    released or `timeout` expires. After `close()` every pending and future
    acquisition fails with `ConnectionFailure`.
    """

    def __init__(
        self,
        options: ConnectOptions,
        max_size: int = DEFAULT_POOL_SIZE,
        timeout: float = 30.0,
    ) -> None:
        self.options = options
        self.max_size = max_size
        self.timeout = timeout
        self._pool: Optional[AsyncConnectionPool] = None
        self._closed = False
        self._leased = 0

    @property
    def leased(self) -> int:
        """Number of connections currently handed out."""
        return self._leased

    @property
    def is_open(self) -> bool:
        return self._pool is not None and not self._closed

    async def open(self) -> None:
        """
        Create the pool and wait until its first connection is established.

        Idempotent while open. Each attempt builds a fresh pool, because psycopg_pool
        closes a pool whose `wait()` times out. Raises `ConnectionFailure` once
        retries are exhausted.
        """
        if self._closed:
            raise ConnectionFailure("Pool has been closed")
        if self._pool is not None:
            return

        try:
            self._pool = await self._connect()
        except (PoolTimeout, psycopg.OperationalError) as exc:
            raise ConnectionFailure(
                f"Could not connect to {self.options.describe()}: {exc}"
            ) from exc
        log.info(
            "Connection pool ready",
            extra={"target": self.options.describe(), "max_size": self.max_size},
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((PoolTimeout, psycopg.OperationalError)),
        reraise=True,
    )
    async def _connect(self) -> AsyncConnectionPool:
        pool = AsyncConnectionPool(
            conninfo=self.options.conninfo(),
            min_size=1,
            max_size=self.max_size,
            timeout=self.timeout,
            kwargs={"autocommit": True},
            open=False,
        )
        await pool.open(wait=False)
        try:
            await pool.wait(timeout=self.timeout)
        except (PoolTimeout, psycopg.OperationalError) as exc:
            log.warning(
                "Connection attempt failed",
                extra={"target": self.options.describe(), "error": str(exc)},
            )
            await pool.close()
            raise
        return pool

    async def acquire(self) -> AsyncConnection:
        """
        Lease a connection from the pool.

        Raises
        ------
        ConnectionFailure
            If the pool is not open, is closed while waiting, or times out.
        """
        if self._pool is None or self._closed:
            raise ConnectionFailure("Connection pool is not open")
        try:
            conn = await self._pool.getconn()
        except PoolClosed as exc:
            raise ConnectionFailure("Connection pool was closed") from exc
        except PoolTimeout as exc:
            raise ConnectionFailure(
                f"No connection available within {self.timeout}s"
            ) from exc
        except psycopg.OperationalError as exc:
            raise ConnectionFailure(f"Failed to establish connection: {exc}") from exc
        self._leased += 1
        return conn

    async def release(self, conn: AsyncConnection) -> None:
        """Return a leased connection to the pool."""
        self._leased -= 1
        if self._pool is None:
            await conn.close()
            return
        await self._pool.putconn(conn)

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[AsyncConnection]:
        """
        Context manager for one logical operation's connection.

        Example
        -------
            async with manager.lease() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
        """
        conn = await self.acquire()
        try:
            yield conn
        finally:
            await self.release(conn)

    async def close(self, timeout: float = DEFAULT_CLOSE_TIMEOUT) -> None:
        """
        Close the pool: pending acquisitions fail and new ones are refused.

        Connections still leased are closed when they are returned.
        """
        if self._closed:
            return
        self._closed = True
        if self._pool is not None:
            await self._pool.close(timeout=timeout)
        log.info("PostgreSQL client shutdown", extra={"leased": self._leased})


__all__ = ["PoolManager", "DEFAULT_POOL_SIZE"]
