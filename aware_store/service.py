"""
Process-level wiring for aware-store.

`StoreService` builds the pool, the persistence paths and the router from
settings, and owns their lifecycle:

    async with StoreService.from_settings(get_settings()) as service:
        service.router.dispatch("insertData", body)

Shutdown drains in-flight operations before the pool is closed.
"""

from __future__ import annotations

from typing import Optional

from aware_store.config import Settings
from aware_store.domain.models import ConnectOptions
from aware_store.infrastructure.pool import PoolManager
from aware_store.persistence.reader import RecordReader
from aware_store.persistence.schema import SchemaProvisioner
from aware_store.persistence.writer import RecordWriter
from aware_store.router import OperationRouter
from aware_store.utils.logging import get_logger

log = get_logger(__name__)


class StoreService:
    def __init__(self, pool: PoolManager) -> None:
        self.pool = pool
        self.provisioner = SchemaProvisioner(pool)
        self.writer = RecordWriter(pool, self.provisioner)
        self.reader = RecordReader(pool)
        self.router = OperationRouter(self.writer, self.reader)

    @classmethod
    def from_settings(cls, settings: Settings) -> "StoreService":
        """
        Resolve connection options and build the service. The pool is not opened yet.

        Raises
        ------
        ConfigurationFailure
            If the connection settings cannot be resolved.
        """
        options = ConnectOptions.from_settings(settings)
        pool = PoolManager(
            options,
            max_size=settings.database_pool_max_size,
            timeout=settings.database_pool_timeout,
        )
        return cls(pool)

    async def start(self) -> None:
        await self.pool.open()
        log.info("Store service started", extra={"operations": self.router.operations()})

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight operations, then close the pool."""
        await self.router.drain()
        if timeout is None:
            await self.pool.close()
        else:
            await self.pool.close(timeout=timeout)

    async def __aenter__(self) -> "StoreService":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


__all__ = ["StoreService"]
