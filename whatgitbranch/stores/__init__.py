"""Directory list persistence backends."""

from .directory_cache import (
    BACKEND_DURABLE,
    BACKEND_EXPIRING,
    DIRECTORIES_KEY,
    DirectoryStore,
    DurableStore,
    ExpiringStore,
    create_store,
    select_cache_backend,
)

__all__ = [
    "BACKEND_DURABLE",
    "BACKEND_EXPIRING",
    "DIRECTORIES_KEY",
    "DirectoryStore",
    "DurableStore",
    "ExpiringStore",
    "create_store",
    "select_cache_backend",
]
