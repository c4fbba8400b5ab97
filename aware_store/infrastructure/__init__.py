"""
Infrastructure package for aware-store.

Centralizes database connectivity concerns (pool lifecycle, connection leases).
Keep this layer focused on I/O and resource management, decoupled from the
persistence paths and the router.
"""

from aware_store.infrastructure.pool import DEFAULT_POOL_SIZE, PoolManager

__all__ = [
    "DEFAULT_POOL_SIZE",
    "PoolManager",
]
