"""
Service discovery for AeroSuite services.

Instances register themselves with a ServiceRegistry, stay alive through
periodic heartbeats and find their dependencies through a DiscoveryClient.
"""

from .client import DiscoveryClient, LoadBalancerState, LoadBalancingStrategy
from .models import DiscoveryEvent, ServiceRecord, ServiceRegistration, ServiceStatus
from .registry import ServiceRegistry
from .storage import (
    InMemoryStorageAdapter,
    MongoStorageAdapter,
    RedisStorageAdapter,
    StorageAdapter,
    create_storage_adapter,
)

__all__ = [
    "DiscoveryClient",
    "DiscoveryEvent",
    "InMemoryStorageAdapter",
    "LoadBalancerState",
    "LoadBalancingStrategy",
    "MongoStorageAdapter",
    "RedisStorageAdapter",
    "ServiceRecord",
    "ServiceRegistration",
    "ServiceRegistry",
    "ServiceStatus",
    "StorageAdapter",
    "create_storage_adapter",
]
