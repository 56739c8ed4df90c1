"""
Service discovery data model.

Service records describe one running instance of a named service. They are
plain pydantic models so every storage backend can round-trip them through
JSON-compatible dictionaries.
"""

import time
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ServiceStatus(str, Enum):
    """Liveness of a service instance."""

    UP = "up"
    DOWN = "down"


class DiscoveryEvent(str, Enum):
    """Events emitted by the service registry."""

    SERVICE_REGISTERED = "service:registered"
    SERVICE_DEREGISTERED = "service:deregistered"
    SERVICE_UPDATED = "service:updated"
    SERVICE_UP = "service:up"
    SERVICE_DOWN = "service:down"
    DISCOVERY_STARTED = "discovery:started"
    DISCOVERY_STOPPED = "discovery:stopped"


class ServiceRegistration(BaseModel):
    """What a service owner supplies when registering an instance."""

    name: str | None = None
    version: str = "1.0.0"
    host: str | None = None
    port: int = 0
    protocol: str = "http"
    metadata: dict[str, Any] = Field(default_factory=dict)


class ServiceRecord(BaseModel):
    """A registered service instance."""

    id: str
    name: str
    version: str = "1.0.0"
    host: str
    port: int = 0
    protocol: str = "http"
    status: ServiceStatus = ServiceStatus.UP
    metadata: dict[str, Any] = Field(default_factory=dict)
    last_heartbeat: float = Field(default_factory=time.time)
    registered_at: float = Field(default_factory=time.time)

    @staticmethod
    def generate_id(name: str) -> str:
        """Build a globally unique id that still shows the service name."""
        return f"{name}-{uuid.uuid4()}"

    @property
    def is_up(self) -> bool:
        return self.status == ServiceStatus.UP

    def matches(
        self,
        name: str | None = None,
        only_healthy: bool = True,
        version: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Check the record against discovery filters (all must hold)."""
        if name and self.name != name:
            return False
        if only_healthy and not self.is_up:
            return False
        if version and self.version != version:
            return False
        for key, value in (metadata or {}).items():
            if key not in self.metadata or self.metadata[key] != value:
                return False
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServiceRecord":
        return cls.model_validate(data)

    def __str__(self) -> str:
        return f"{self.name}[{self.id}]@{self.protocol}://{self.host}:{self.port}"
