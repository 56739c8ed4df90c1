"""
Service Registry

Owns the in-memory view of every known service instance, keeps the
instances registered by this process alive with periodic heartbeats and
flags instances owned by other processes as down when their heartbeats go
stale. Persistence is delegated to a pluggable storage adapter; storage
failures degrade to cached answers instead of propagating.
"""

import asyncio
import time
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as ModelValidationError

from ..config import ChassisConfig, DiscoveryConfig, ServiceConfig
from ..events import EventEmitter, Listener
from ..exceptions import ValidationError
from ..logger import configure_logging, get_logger
from .models import (
    DiscoveryEvent,
    ServiceRecord,
    ServiceRegistration,
    ServiceStatus,
)
from .storage import StorageAdapter, create_storage_adapter

logger = get_logger(__name__)

_STORAGE_FAILED = object()


class ServiceRegistry:
    """Registry of service instances with heartbeat and health monitoring."""

    def __init__(
        self,
        storage: StorageAdapter | None = None,
        config: DiscoveryConfig | None = None,
        service: ServiceConfig | None = None,
    ):
        self.config = config or DiscoveryConfig()
        self.service_config = service or ServiceConfig()
        self.storage = storage
        # Adapters built by from_config are closed with the registry
        self._owns_storage = False

        self._services: dict[str, ServiceRecord] = {}
        # ids registered by this process, in registration order
        self._owned: dict[str, None] = {}
        self._events: EventEmitter[DiscoveryEvent] = EventEmitter(
            DiscoveryEvent, "service_registry"
        )

        # Background tasks
        self._heartbeat_task: asyncio.Task | None = None
        self._health_check_task: asyncio.Task | None = None

    @classmethod
    def from_config(
        cls, config: ChassisConfig, setup_logs: bool = True
    ) -> "ServiceRegistry":
        """
        Build a registry and its storage backend from chassis configuration.

        The storage adapter belongs to the registry and is closed by
        ``close()``. Logging is configured from ``config.logging`` unless
        ``setup_logs`` is False.
        """
        if setup_logs:
            configure_logging(config)
        registry = cls(
            create_storage_adapter(config.storage), config.discovery, config.service
        )
        registry._owns_storage = True
        return registry

    async def __aenter__(self) -> "ServiceRegistry":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop the registry and release storage it created."""
        try:
            await self.stop()
        finally:
            if self._owns_storage and self.storage is not None:
                await self._call_storage("close", None)
                self._owns_storage = False

    @property
    def owned_service_ids(self) -> list[str]:
        return list(self._owned)

    @property
    def is_running(self) -> bool:
        """Whether the heartbeat and health-check loops are active."""
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    def on(self, event: DiscoveryEvent | str, listener: Listener) -> None:
        """Subscribe to registry events."""
        self._events.on(event, listener)

    def off(self, event: DiscoveryEvent | str, listener: Listener) -> None:
        """Unsubscribe from registry events."""
        self._events.off(event, listener)

    async def _call_storage(self, operation: str, default: Any, *args: Any) -> Any:
        """Run a storage operation, converting any failure into ``default``."""
        if self.storage is None:
            return default
        try:
            return await getattr(self.storage, operation)(*args)
        except Exception as e:
            logger.error(
                "Storage operation failed, continuing from cache",
                operation=operation,
                backend=self.storage.backend_name,
                error=str(e),
            )
            return default

    async def register_service(
        self, info: ServiceRegistration | Mapping[str, Any]
    ) -> str:
        """Register an instance owned by this process and return its id."""
        if not isinstance(info, ServiceRegistration):
            try:
                info = ServiceRegistration.model_validate(dict(info))
            except ModelValidationError as e:
                raise ValidationError(
                    f"Invalid service registration: {e}",
                    error_code="INVALID_REGISTRATION",
                )
        if not info.name:
            raise ValidationError(
                "Service name is required", error_code="SERVICE_NAME_REQUIRED"
            )

        now = time.time()
        record = ServiceRecord(
            id=ServiceRecord.generate_id(info.name),
            name=info.name,
            version=info.version,
            host=info.host or self.config.hostname,
            port=info.port,
            protocol=info.protocol,
            status=ServiceStatus.UP,
            metadata=dict(info.metadata),
            last_heartbeat=now,
            registered_at=now,
        )

        self._services[record.id] = record
        await self._call_storage("register_service", False, record)
        self._owned[record.id] = None

        if len(self._owned) == 1:
            self._start_loops()

        logger.info("Registered service instance", service=str(record))
        self._events.emit(DiscoveryEvent.SERVICE_REGISTERED, record.model_copy(deep=True))
        return record.id

    async def deregister_service(self, service_id: str) -> bool:
        """Remove an instance from the cache, storage and the owned set."""
        record = self._services.pop(service_id, None)
        if record is None:
            record = await self._call_storage("get_service", None, service_id)
        self._owned.pop(service_id, None)

        removed = await self._call_storage("deregister_service", False, service_id)

        if not self._owned:
            await self._stop_loops()

        if record is None and not removed:
            return False

        logger.info("Deregistered service instance", service_id=service_id)
        if record is not None:
            self._events.emit(DiscoveryEvent.SERVICE_DEREGISTERED, record)
        return True

    async def discover_services(
        self,
        name: str | None = None,
        *,
        only_healthy: bool = True,
        version: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> list[ServiceRecord]:
        """Find instances by name, health, version and exact metadata values."""
        for record in await self._call_storage("get_all_services", []):
            if record.id not in self._services:
                self._services[record.id] = record

        return [
            record.model_copy(deep=True)
            for record in self._services.values()
            if record.matches(
                name=name,
                only_healthy=only_healthy,
                version=version,
                metadata=dict(metadata) if metadata else None,
            )
        ]

    async def get_service(self, service_id: str) -> ServiceRecord | None:
        """Look an instance up by id, falling back to storage on a cache miss."""
        record = self._services.get(service_id)
        if record is None:
            record = await self._call_storage("get_service", None, service_id)
            if record is None:
                return None
            self._services[service_id] = record
        return record.model_copy(deep=True)

    async def update_service_metadata(
        self, service_id: str, patch: Mapping[str, Any]
    ) -> bool:
        """Shallow-merge ``patch`` into an instance's metadata."""
        record = self._services.get(service_id)
        if record is None:
            return False

        record.metadata = {**record.metadata, **patch}
        await self._call_storage("update_service", False, record)

        logger.debug("Updated service metadata", service_id=service_id)
        self._events.emit(DiscoveryEvent.SERVICE_UPDATED, record.model_copy(deep=True))
        return True

    async def send_heartbeat(self, service_id: str) -> bool:
        """Mark an instance alive now and persist the heartbeat."""
        record = self._services.get(service_id)
        if record is None:
            return False

        record.last_heartbeat = time.time()
        record.status = ServiceStatus.UP
        updated = await self._call_storage("update_service", _STORAGE_FAILED, record)
        if updated is False and service_id in self._owned:
            # Record missing from storage: registration hit an outage, or
            # the store was cleared underneath us
            logger.warning(
                "Re-registering service missing from storage", service_id=service_id
            )
            await self._call_storage("register_service", False, record)
        return True

    async def register_self(self, **overrides: Any) -> str:
        """Register this process using the configured service defaults."""
        info = {**self.service_config.model_dump(), **overrides}
        return await self.register_service(info)

    async def check_service_health(self) -> None:
        """Run one health-check tick over every instance this process does not own."""
        await self._refresh_remote_heartbeats()

        now = time.time()
        for service_id, record in list(self._services.items()):
            if service_id in self._owned:
                continue

            if now - record.last_heartbeat > self.config.timeout_threshold:
                if record.status == ServiceStatus.UP:
                    record.status = ServiceStatus.DOWN
                    logger.warning(
                        "Service heartbeat timed out",
                        service=str(record),
                        seconds_since_heartbeat=round(now - record.last_heartbeat, 3),
                    )
                    self._events.emit(
                        DiscoveryEvent.SERVICE_DOWN, record.model_copy(deep=True)
                    )
            elif record.status == ServiceStatus.DOWN:
                record.status = ServiceStatus.UP
                logger.info("Service recovered", service=str(record))
                self._events.emit(DiscoveryEvent.SERVICE_UP, record.model_copy(deep=True))

    async def _refresh_remote_heartbeats(self) -> None:
        """Pull heartbeats written by other processes out of storage."""
        if self.storage is None:
            return

        stored = await self._call_storage("get_all_services", _STORAGE_FAILED)
        if stored is _STORAGE_FAILED:
            return

        for record in stored:
            if record.id in self._owned:
                continue
            cached = self._services.get(record.id)
            if cached is None:
                self._services[record.id] = record
            else:
                cached.last_heartbeat = record.last_heartbeat

    async def start(self) -> None:
        """Load stored instances and resume loops for owned instances."""
        for record in await self._call_storage("get_all_services", []):
            if record.id not in self._owned:
                self._services[record.id] = record

        if self._owned:
            self._start_loops()

        logger.info(
            "Service registry started",
            known_services=len(self._services),
            owned_services=len(self._owned),
        )
        self._events.emit(DiscoveryEvent.DISCOVERY_STARTED)

    async def stop(self) -> None:
        """Stop the loops and deregister every owned instance."""
        await self._stop_loops()

        for service_id in list(self._owned):
            await self.deregister_service(service_id)

        logger.info("Service registry stopped")
        self._events.emit(DiscoveryEvent.DISCOVERY_STOPPED)

    def get_stats(self) -> dict[str, int]:
        """Get registry statistics."""
        up = sum(1 for record in self._services.values() if record.is_up)
        return {
            "known_services": len(self._services),
            "owned_services": len(self._owned),
            "up": up,
            "down": len(self._services) - up,
        }

    def _start_loops(self) -> None:
        if self._heartbeat_task is None or self._heartbeat_task.done():
            self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        if self._health_check_task is None or self._health_check_task.done():
            self._health_check_task = asyncio.create_task(self._health_check_loop())
        logger.debug(
            "Started discovery loops", interval=self.config.heartbeat_interval
        )

    async def _stop_loops(self) -> None:
        tasks = [t for t in (self._heartbeat_task, self._health_check_task) if t]
        self._heartbeat_task = None
        self._health_check_task = None
        if not tasks:
            return

        current = asyncio.current_task()
        for task in tasks:
            if task is not current:
                task.cancel()

        # Wait for tasks to complete
        await asyncio.gather(
            *(t for t in tasks if t is not current), return_exceptions=True
        )
        logger.debug("Stopped discovery loops")

    async def _heartbeat_loop(self) -> None:
        """Background heartbeat loop for owned instances."""
        while True:
            try:
                await asyncio.sleep(self.config.heartbeat_interval)
                for service_id in list(self._owned):
                    await self.send_heartbeat(service_id)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Heartbeat loop error", error=str(e), exc_info=True)

    async def _health_check_loop(self) -> None:
        """Background staleness check for instances owned elsewhere."""
        while True:
            try:
                await asyncio.sleep(self.config.heartbeat_interval)
                await self.check_service_health()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Health check loop error", error=str(e), exc_info=True)
