"""
Conformance tests shared by every storage adapter.
"""

import pytest

from aerosuite_chassis.config import StorageBackend, StorageConfig
from aerosuite_chassis.discovery import (
    InMemoryStorageAdapter,
    MongoStorageAdapter,
    RedisStorageAdapter,
    create_storage_adapter,
)
from aerosuite_chassis.discovery.models import ServiceStatus
from aerosuite_chassis.exceptions import StorageError
from tests.fakes import make_record


class TestStorageContract:
    """Behaviour every backend must share."""

    @pytest.mark.asyncio
    async def test_register_then_listed(self, storage_adapter):
        record = make_record("pricing-service", metadata={"region": "us"})

        assert await storage_adapter.register_service(record) is True

        stored = await storage_adapter.get_all_services()
        assert [r.id for r in stored] == [record.id]
        assert stored[0] == record

    @pytest.mark.asyncio
    async def test_get_service_round_trips_all_fields(self, storage_adapter):
        record = make_record(
            "inventory-service",
            version="2.1.0",
            protocol="https",
            status=ServiceStatus.DOWN,
            metadata={"region": "eu", "weight": 3},
        )
        await storage_adapter.register_service(record)

        assert await storage_adapter.get_service(record.id) == record

    @pytest.mark.asyncio
    async def test_unknown_id_is_none(self, storage_adapter):
        assert await storage_adapter.get_service("missing-service-id") is None

    @pytest.mark.asyncio
    async def test_deregister_removes_from_listing(self, storage_adapter):
        first = make_record("pricing-service")
        second = make_record("pricing-service")
        await storage_adapter.register_service(first)
        await storage_adapter.register_service(second)

        assert await storage_adapter.deregister_service(first.id) is True

        remaining = await storage_adapter.get_all_services()
        assert [r.id for r in remaining] == [second.id]
        assert await storage_adapter.get_service(first.id) is None

    @pytest.mark.asyncio
    async def test_deregister_unknown_returns_false(self, storage_adapter):
        assert await storage_adapter.deregister_service("missing-service-id") is False

    @pytest.mark.asyncio
    async def test_update_existing_record(self, storage_adapter):
        record = make_record("pricing-service")
        await storage_adapter.register_service(record)

        changed = record.model_copy(update={"last_heartbeat": record.last_heartbeat + 5})
        assert await storage_adapter.update_service(changed) is True

        stored = await storage_adapter.get_service(record.id)
        assert stored.last_heartbeat == record.last_heartbeat + 5

    @pytest.mark.asyncio
    async def test_update_missing_record_returns_false(self, storage_adapter):
        record = make_record("pricing-service")

        assert await storage_adapter.update_service(record) is False
        assert await storage_adapter.get_all_services() == []

    @pytest.mark.asyncio
    async def test_clear_empties_storage(self, storage_adapter):
        for _ in range(3):
            await storage_adapter.register_service(make_record("pricing-service"))

        assert await storage_adapter.clear_services() is True
        assert await storage_adapter.get_all_services() == []

    @pytest.mark.asyncio
    async def test_returned_records_do_not_alias_storage(self, storage_adapter):
        record = make_record("pricing-service", metadata={"region": "us"})
        await storage_adapter.register_service(record)

        record.metadata["region"] = "eu"
        fetched = await storage_adapter.get_service(record.id)
        fetched.metadata["region"] = "ap"

        stored = await storage_adapter.get_service(record.id)
        assert stored.metadata == {"region": "us"}


class TestRedisStorageAdapter:
    """Redis-specific layout and failure handling."""

    @pytest.mark.asyncio
    async def test_record_and_index_written_in_one_transaction(self, fake_redis):
        adapter = RedisStorageAdapter(fake_redis, key_prefix="test:")
        record = make_record("pricing-service")

        await adapter.register_service(record)

        assert fake_redis.transactions == 1
        assert f"test:service:{record.id}" in fake_redis.strings
        assert fake_redis.sets["test:services"] == {record.id}

    @pytest.mark.asyncio
    async def test_index_entry_without_record_is_skipped(self, fake_redis):
        adapter = RedisStorageAdapter(fake_redis, key_prefix="test:")
        record = make_record("pricing-service")
        await adapter.register_service(record)
        fake_redis.sets["test:services"].add("orphaned-id")

        stored = await adapter.get_all_services()

        assert [r.id for r in stored] == [record.id]

    @pytest.mark.asyncio
    async def test_clear_retries_when_index_changes(self, fake_redis):
        adapter = RedisStorageAdapter(fake_redis, key_prefix="test:")
        await adapter.register_service(make_record("pricing-service"))
        fake_redis.watch_conflicts = 2

        assert await adapter.clear_services() is True
        assert fake_redis.strings == {}
        assert fake_redis.sets == {}

    @pytest.mark.asyncio
    async def test_backend_failure_raises_storage_error(self, fake_redis):
        adapter = RedisStorageAdapter(fake_redis)
        fake_redis.fail = True

        with pytest.raises(StorageError) as exc_info:
            await adapter.get_all_services()

        assert exc_info.value.operation == "get_all_services"
        assert exc_info.value.backend == "redis"
        assert exc_info.value.__cause__ is not None

    @pytest.mark.asyncio
    async def test_close_releases_client(self, fake_redis):
        adapter = RedisStorageAdapter(fake_redis)

        await adapter.close()

        assert fake_redis.closed is True


class TestMongoStorageAdapter:
    """MongoDB-specific document layout and failure handling."""

    @pytest.mark.asyncio
    async def test_document_keyed_by_service_id(self, fake_collection):
        adapter = MongoStorageAdapter(fake_collection)
        record = make_record("pricing-service")

        await adapter.register_service(record)

        document = fake_collection.documents[record.id]
        assert document["_id"] == record.id
        assert document["name"] == "pricing-service"

    @pytest.mark.asyncio
    async def test_register_twice_upserts(self, fake_collection):
        adapter = MongoStorageAdapter(fake_collection)
        record = make_record("pricing-service")

        await adapter.register_service(record)
        await adapter.register_service(record.model_copy(update={"port": 9090}))

        assert len(fake_collection.documents) == 1
        assert (await adapter.get_service(record.id)).port == 9090

    @pytest.mark.asyncio
    async def test_backend_failure_raises_storage_error(self, fake_collection):
        adapter = MongoStorageAdapter(fake_collection)
        fake_collection.fail = True

        with pytest.raises(StorageError) as exc_info:
            await adapter.register_service(make_record("pricing-service"))

        assert exc_info.value.backend == "mongodb"
        assert exc_info.value.error_code == "STORAGE_ERROR"


class TestStorageFactory:
    """Backend selection from configuration."""

    def test_memory_backend(self):
        adapter = create_storage_adapter(StorageConfig(backend=StorageBackend.MEMORY))
        assert isinstance(adapter, InMemoryStorageAdapter)

    def test_redis_backend_from_url(self):
        adapter = create_storage_adapter(
            StorageConfig(backend="redis", redis_url="redis://cache:6379/2")
        )
        assert isinstance(adapter, RedisStorageAdapter)
        assert adapter.backend_name == "redis"
