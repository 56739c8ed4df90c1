"""
Resilience patterns for AeroSuite services.

This module provides:
- Circuit breaker with half-open probing and call timeouts
- A registry holding one breaker per dependency name
"""

from .circuit_breaker import (
    BreakerEvent,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerObserver,
    CircuitState,
)
from .registry import CircuitBreakerRegistry

__all__ = [
    "BreakerEvent",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerObserver",
    "CircuitBreakerRegistry",
    "CircuitState",
]
