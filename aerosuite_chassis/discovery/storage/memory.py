"""In-memory storage adapter for single-process use and tests."""

from ...logger import get_logger
from ..models import ServiceRecord
from .base import StorageAdapter

logger = get_logger(__name__)


class InMemoryStorageAdapter(StorageAdapter):
    """Dict-backed storage. Records are copied in and out."""

    backend_name = "memory"

    def __init__(self):
        self._services: dict[str, ServiceRecord] = {}

    async def register_service(self, record: ServiceRecord) -> bool:
        self._services[record.id] = record.model_copy(deep=True)
        logger.debug("Stored service record", service_id=record.id)
        return True

    async def deregister_service(self, service_id: str) -> bool:
        return self._services.pop(service_id, None) is not None

    async def get_service(self, service_id: str) -> ServiceRecord | None:
        record = self._services.get(service_id)
        return record.model_copy(deep=True) if record else None

    async def update_service(self, record: ServiceRecord) -> bool:
        if record.id not in self._services:
            return False
        self._services[record.id] = record.model_copy(deep=True)
        return True

    async def get_all_services(self) -> list[ServiceRecord]:
        return [record.model_copy(deep=True) for record in self._services.values()]

    async def clear_services(self) -> bool:
        self._services.clear()
        return True
