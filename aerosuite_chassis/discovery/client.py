"""
Discovery Client

Thin facade over a ServiceRegistry used by application code: it remembers the
instance it registered and picks one healthy instance of a dependency per
call using client-local load-balancing state.
"""

import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..exceptions import ValidationError
from ..logger import get_logger
from .models import ServiceRecord, ServiceRegistration
from .registry import ServiceRegistry

logger = get_logger(__name__)


class LoadBalancingStrategy(str, Enum):
    """Instance selection strategies."""

    ROUND_ROBIN = "round-robin"
    RANDOM = "random"


@dataclass
class LoadBalancerState:
    """Per-service selection state, never persisted."""

    index: int = 0
    candidates: list[ServiceRecord] = field(default_factory=list)


class DiscoveryClient:
    """Registers the local instance and resolves dependencies to instances."""

    def __init__(self, registry: ServiceRegistry):
        self.registry = registry
        self.service_id: str | None = None
        self._balancers: dict[str, LoadBalancerState] = {}

    async def register(
        self, info: ServiceRegistration | Mapping[str, Any] | None = None
    ) -> str:
        """Register ``info``, or the registry's configured service when omitted."""
        if info is None:
            self.service_id = await self.registry.register_self()
        else:
            self.service_id = await self.registry.register_service(info)
        return self.service_id

    async def deregister(self, service_id: str | None = None) -> bool:
        """Deregister ``service_id``, or this client's own instance."""
        target = service_id or self.service_id
        if target is None:
            return False

        removed = await self.registry.deregister_service(target)
        if target == self.service_id:
            self.service_id = None
        return removed

    async def discover(self, name: str | None = None, **options: Any) -> list[ServiceRecord]:
        return await self.registry.discover_services(name, **options)

    async def get_service_instance(
        self,
        name: str,
        strategy: LoadBalancingStrategy | str = LoadBalancingStrategy.ROUND_ROBIN,
        filters: Mapping[str, Any] | None = None,
    ) -> ServiceRecord | None:
        """Pick one healthy instance of ``name``, or None when there is none."""
        strategy = self._resolve_strategy(strategy)
        filters = filters or {}

        candidates = await self.registry.discover_services(
            name,
            only_healthy=True,
            version=filters.get("version"),
            metadata=filters.get("metadata"),
        )
        if not candidates:
            logger.debug("No healthy instances available", service_name=name)
            return None

        state = self._balancers.setdefault(name, LoadBalancerState())
        state.candidates = candidates

        if strategy == LoadBalancingStrategy.RANDOM:
            return random.choice(candidates)

        # Index is kept across membership changes, not clamped to the new list
        selected = candidates[state.index % len(candidates)]
        state.index = (state.index + 1) % len(candidates)
        return selected

    async def get_service_url(
        self,
        name: str,
        path: str = "",
        strategy: LoadBalancingStrategy | str = LoadBalancingStrategy.ROUND_ROBIN,
        filters: Mapping[str, Any] | None = None,
    ) -> str | None:
        """Resolve ``name`` to ``protocol://host:port/path`` for one instance."""
        instance = await self.get_service_instance(name, strategy, filters)
        if instance is None:
            return None

        if not path.startswith("/"):
            path = f"/{path}"
        return f"{instance.protocol}://{instance.host}:{instance.port}{path}"

    @staticmethod
    def _resolve_strategy(strategy: LoadBalancingStrategy | str) -> LoadBalancingStrategy:
        try:
            return LoadBalancingStrategy(strategy)
        except ValueError:
            raise ValidationError(
                f"Unknown load balancing strategy: {strategy}",
                error_code="UNKNOWN_STRATEGY",
                details={"supported": [s.value for s in LoadBalancingStrategy]},
            ) from None
