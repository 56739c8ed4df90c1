"""
Pluggable persistence for the service registry.

Backends are interchangeable: swapping one for another requires no change to
``ServiceRegistry``.
"""

from ...config import StorageBackend, StorageConfig
from ...exceptions import ConfigurationError
from .base import StorageAdapter
from .memory import InMemoryStorageAdapter
from .mongodb_adapter import MongoStorageAdapter
from .redis_adapter import RedisStorageAdapter


def create_storage_adapter(config: StorageConfig) -> StorageAdapter:
    """Build the adapter selected by ``config.backend``."""
    if config.backend == StorageBackend.MEMORY:
        return InMemoryStorageAdapter()
    if config.backend == StorageBackend.REDIS:
        return RedisStorageAdapter.from_url(config.redis_url, config.key_prefix)
    if config.backend == StorageBackend.MONGODB:
        return MongoStorageAdapter.from_url(
            config.mongodb_url, config.mongodb_database, config.mongodb_collection
        )
    raise ConfigurationError(f"Unsupported storage backend: {config.backend}")


__all__ = [
    "InMemoryStorageAdapter",
    "MongoStorageAdapter",
    "RedisStorageAdapter",
    "StorageAdapter",
    "create_storage_adapter",
]
