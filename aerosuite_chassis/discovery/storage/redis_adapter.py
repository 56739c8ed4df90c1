"""
Redis-backed storage adapter.

Layout:
    <prefix>service:<id>   JSON encoded service record
    <prefix>services       set of every registered id

Record and index are always written in one MULTI/EXEC transaction so a
crash cannot leave an orphaned index entry or an unindexed record.
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import redis.asyncio as redis
from pydantic import ValidationError as ModelValidationError
from redis.exceptions import RedisError, WatchError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from ...exceptions import StorageError
from ...logger import get_logger
from ..models import ServiceRecord
from .base import StorageAdapter

logger = get_logger(__name__)


class RedisStorageAdapter(StorageAdapter):
    """Service records in Redis with a secondary index set."""

    backend_name = "redis"
    clear_attempts = 5

    def __init__(self, client: Any, key_prefix: str = "aerosuite:discovery:"):
        self._client = client
        self._prefix = key_prefix
        self._index_key = f"{key_prefix}services"

    @classmethod
    def from_url(
        cls, url: str, key_prefix: str = "aerosuite:discovery:"
    ) -> "RedisStorageAdapter":
        """Create an adapter with its own connection pool."""
        return cls(redis.from_url(url, decode_responses=True), key_prefix)

    def _record_key(self, service_id: str) -> str:
        return f"{self._prefix}service:{service_id}"

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except RedisError as e:
            raise StorageError(
                f"Redis {operation} failed: {e}", operation, self.backend_name
            ) from e

    @staticmethod
    def _decode(value: Any) -> str:
        return value.decode("utf-8") if isinstance(value, bytes) else value

    def _load(self, raw: Any) -> ServiceRecord | None:
        try:
            return ServiceRecord.from_dict(json.loads(raw))
        except (ValueError, ModelValidationError) as e:
            logger.warning("Skipping unreadable service record", error=str(e))
            return None

    async def register_service(self, record: ServiceRecord) -> bool:
        with self._translate_errors("register_service"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(self._record_key(record.id), json.dumps(record.to_dict()))
                pipe.sadd(self._index_key, record.id)
                await pipe.execute()
        return True

    async def deregister_service(self, service_id: str) -> bool:
        with self._translate_errors("deregister_service"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(self._record_key(service_id))
                pipe.srem(self._index_key, service_id)
                deleted, unindexed = await pipe.execute()
        return bool(deleted) or bool(unindexed)

    async def get_service(self, service_id: str) -> ServiceRecord | None:
        with self._translate_errors("get_service"):
            raw = await self._client.get(self._record_key(service_id))
        if raw is None:
            return None
        return self._load(raw)

    async def update_service(self, record: ServiceRecord) -> bool:
        with self._translate_errors("update_service"):
            # XX: only overwrite, never resurrect a deregistered record
            updated = await self._client.set(
                self._record_key(record.id), json.dumps(record.to_dict()), xx=True
            )
        return bool(updated)

    async def get_all_services(self) -> list[ServiceRecord]:
        with self._translate_errors("get_all_services"):
            members = await self._client.smembers(self._index_key)
            ids = sorted(self._decode(i) for i in members)
            if not ids:
                return []
            values = await self._client.mget([self._record_key(i) for i in ids])

        records = []
        for service_id, raw in zip(ids, values):
            if raw is None:
                logger.warning("Index entry without record", service_id=service_id)
                continue
            record = self._load(raw)
            if record:
                records.append(record)
        return records

    async def clear_services(self) -> bool:
        with self._translate_errors("clear_services"):
            # WATCH aborts the transaction if a register races the clear
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(WatchError),
                stop=stop_after_attempt(self.clear_attempts),
                reraise=True,
            ):
                with attempt:
                    await self._clear_once()
        return True

    async def _clear_once(self) -> None:
        async with self._client.pipeline(transaction=True) as pipe:
            await pipe.watch(self._index_key)
            ids = await pipe.smembers(self._index_key)
            pipe.multi()
            for service_id in ids:
                pipe.delete(self._record_key(self._decode(service_id)))
            pipe.delete(self._index_key)
            await pipe.execute()

    async def close(self) -> None:
        with self._translate_errors("close"):
            await self._client.aclose()
