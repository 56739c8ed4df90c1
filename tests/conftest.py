"""
Shared pytest fixtures for the chassis test suite.
"""

import pytest
import pytest_asyncio

from aerosuite_chassis.config import DiscoveryConfig
from aerosuite_chassis.discovery import (
    DiscoveryClient,
    InMemoryStorageAdapter,
    MongoStorageAdapter,
    RedisStorageAdapter,
    ServiceRegistry,
)
from tests.fakes import FakeMongoCollection, FakeRedis

# Short intervals keep loop-driven tests fast
HEARTBEAT_INTERVAL = 0.05
TIMEOUT_THRESHOLD = 0.2


@pytest.fixture
def discovery_config() -> DiscoveryConfig:
    return DiscoveryConfig(
        heartbeat_interval=HEARTBEAT_INTERVAL,
        timeout_threshold=TIMEOUT_THRESHOLD,
        hostname="test-host",
    )


@pytest.fixture
def memory_storage() -> InMemoryStorageAdapter:
    return InMemoryStorageAdapter()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def fake_collection() -> FakeMongoCollection:
    return FakeMongoCollection()


@pytest.fixture(params=["memory", "redis", "mongodb"])
def storage_adapter(request, fake_redis, fake_collection):
    """Every storage backend, each over its in-memory double."""
    if request.param == "redis":
        return RedisStorageAdapter(fake_redis, key_prefix="test:")
    if request.param == "mongodb":
        return MongoStorageAdapter(fake_collection)
    return InMemoryStorageAdapter()


@pytest_asyncio.fixture
async def registry(memory_storage, discovery_config):
    """Registry over in-memory storage; owned services are cleaned up."""
    registry = ServiceRegistry(memory_storage, discovery_config)
    yield registry
    await registry.stop()


@pytest_asyncio.fixture
async def peer_registry(memory_storage, discovery_config):
    """A second registry sharing storage, standing in for another process."""
    registry = ServiceRegistry(memory_storage, discovery_config)
    yield registry
    await registry.stop()


@pytest.fixture
def client(registry) -> DiscoveryClient:
    return DiscoveryClient(registry)
