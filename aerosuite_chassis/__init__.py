"""
AeroSuite Chassis - service discovery and resilience core

Shared building blocks for the AeroSuite services, providing registration,
discovery and health monitoring of service instances plus circuit breakers
for calls between them.

Key Features:
- Unified configuration management (YAML, env vars)
- Structured logging with JSON output
- Service registry with heartbeats and pluggable storage (memory, Redis, MongoDB)
- Discovery client with round-robin and random load balancing
- Circuit breakers with a per-dependency registry

Usage:
    >>> from aerosuite_chassis import DiscoveryClient, ServiceRegistry
    >>> from aerosuite_chassis.config import ChassisConfig

    >>> registry = ServiceRegistry.from_config(ChassisConfig.from_env())
    >>> async with registry:
    ...     client = DiscoveryClient(registry)
    ...     await client.register({"name": "inventory-service", "port": 8080})
    ...     url = await client.get_service_url("pricing-service", "/quotes")
"""

__version__ = "0.1.0"
__author__ = "AeroSuite Team"

# Configuration system
from .config import ChassisConfig, load_config

# Service discovery
from .discovery import (
    DiscoveryClient,
    DiscoveryEvent,
    LoadBalancingStrategy,
    ServiceRecord,
    ServiceRegistration,
    ServiceRegistry,
    ServiceStatus,
)

# Exceptions
from .exceptions import (
    ChassisError,
    CircuitBreakerError,
    CircuitOpenError,
    CircuitTimeoutError,
    ConfigurationError,
    StorageError,
    ValidationError,
)

# Logging
from .logger import LogConfig, configure_logging, get_logger, setup_logging

# Resilience
from .resilience import (
    BreakerEvent,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerObserver,
    CircuitBreakerRegistry,
    CircuitState,
)

__all__ = [
    "BreakerEvent",
    "ChassisConfig",
    "ChassisError",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitBreakerObserver",
    "CircuitBreakerRegistry",
    "CircuitOpenError",
    "CircuitState",
    "CircuitTimeoutError",
    "ConfigurationError",
    "DiscoveryClient",
    "DiscoveryEvent",
    "LoadBalancingStrategy",
    "LogConfig",
    "ServiceRecord",
    "ServiceRegistration",
    "ServiceRegistry",
    "ServiceStatus",
    "StorageError",
    "ValidationError",
    "configure_logging",
    "get_logger",
    "load_config",
    "setup_logging",
]
