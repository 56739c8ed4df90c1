"""
MongoDB-backed storage adapter.

One document per service instance, keyed by ``_id`` = service id. Every
operation touches a single document (or, for clear, the whole collection),
so MongoDB's per-document atomicity covers the record-plus-index guarantee
without a separate index.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from pydantic import ValidationError as ModelValidationError
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from ...exceptions import StorageError
from ...logger import get_logger
from ..models import ServiceRecord
from .base import StorageAdapter

logger = get_logger(__name__)


class MongoStorageAdapter(StorageAdapter):
    """Service records stored as MongoDB documents."""

    backend_name = "mongodb"

    def __init__(self, collection: Any, client: Any | None = None):
        self._collection = collection
        self._client = client

    @classmethod
    def from_url(
        cls, url: str, database: str = "aerosuite", collection: str = "services"
    ) -> "MongoStorageAdapter":
        """Create an adapter that owns its client."""
        client = AsyncMongoClient(url)
        return cls(client[database][collection], client=client)

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except PyMongoError as e:
            raise StorageError(
                f"MongoDB {operation} failed: {e}", operation, self.backend_name
            ) from e

    @staticmethod
    def _to_document(record: ServiceRecord) -> dict[str, Any]:
        return {"_id": record.id, **record.to_dict()}

    @staticmethod
    def _from_document(document: dict[str, Any]) -> ServiceRecord | None:
        data = dict(document)
        data.setdefault("id", data.get("_id"))
        data.pop("_id", None)
        try:
            return ServiceRecord.from_dict(data)
        except ModelValidationError as e:
            logger.warning("Skipping unreadable service document", error=str(e))
            return None

    async def register_service(self, record: ServiceRecord) -> bool:
        with self._translate_errors("register_service"):
            await self._collection.replace_one(
                {"_id": record.id}, self._to_document(record), upsert=True
            )
        return True

    async def deregister_service(self, service_id: str) -> bool:
        with self._translate_errors("deregister_service"):
            result = await self._collection.delete_one({"_id": service_id})
        return result.deleted_count > 0

    async def get_service(self, service_id: str) -> ServiceRecord | None:
        with self._translate_errors("get_service"):
            document = await self._collection.find_one({"_id": service_id})
        if document is None:
            return None
        return self._from_document(document)

    async def update_service(self, record: ServiceRecord) -> bool:
        with self._translate_errors("update_service"):
            result = await self._collection.replace_one(
                {"_id": record.id}, self._to_document(record)
            )
        return result.matched_count > 0

    async def get_all_services(self) -> list[ServiceRecord]:
        records = []
        with self._translate_errors("get_all_services"):
            async for document in self._collection.find({}):
                record = self._from_document(document)
                if record:
                    records.append(record)
        return records

    async def clear_services(self) -> bool:
        with self._translate_errors("clear_services"):
            await self._collection.delete_many({})
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
