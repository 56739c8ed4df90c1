"""
Storage adapter contract for the service registry.

Every backend implements the same six asynchronous operations. Backend
failures surface as ``StorageError``; the registry decides how to degrade.
"""

from abc import ABC, abstractmethod

from ..models import ServiceRecord


class StorageAdapter(ABC):
    """Abstract persistence for service records."""

    backend_name = "abstract"

    @abstractmethod
    async def register_service(self, record: ServiceRecord) -> bool:
        """Store ``record`` and add its id to the set of known services."""

    @abstractmethod
    async def deregister_service(self, service_id: str) -> bool:
        """Remove a record and its index entry. Returns whether it existed."""

    @abstractmethod
    async def get_service(self, service_id: str) -> ServiceRecord | None:
        """Fetch a single record, or None if unknown."""

    @abstractmethod
    async def update_service(self, record: ServiceRecord) -> bool:
        """Overwrite an existing record. Returns False if it does not exist."""

    @abstractmethod
    async def get_all_services(self) -> list[ServiceRecord]:
        """Return every stored record."""

    @abstractmethod
    async def clear_services(self) -> bool:
        """Remove every record and the index."""

    async def close(self) -> None:
        """Release backend connections."""
