"""
Utilities package for aware-store.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of domain-specific logic.
"""

from aware_store.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
