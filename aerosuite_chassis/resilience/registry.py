"""
Circuit Breaker Registry

Holds exactly one breaker per dependency name so every caller of a
dependency shares the same failure accounting.
"""

from typing import Any

from ..config import CircuitBreakerSettings
from ..logger import get_logger
from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitBreakerObserver

logger = get_logger(__name__)


class CircuitBreakerRegistry:
    """Named circuit breakers sharing registry-wide defaults."""

    def __init__(
        self,
        defaults: CircuitBreakerSettings | None = None,
        observer: CircuitBreakerObserver | None = None,
    ):
        self.defaults = defaults or CircuitBreakerSettings()
        self.observer = observer
        self._breakers: dict[str, CircuitBreaker] = {}

    def get_or_create(self, name: str, **options: Any) -> CircuitBreaker:
        """
        Get the breaker for ``name``, creating it on first use.

        Args:
            name: Dependency name, unique within this registry
            **options: CircuitBreakerConfig fields overriding the defaults;
                ignored when the breaker already exists

        Returns:
            The single live breaker for ``name``
        """
        breaker = self._breakers.get(name)
        if breaker is None:
            config = CircuitBreakerConfig.from_settings(self.defaults, **options)
            breaker = CircuitBreaker(name, config, observer=self.observer)
            self._breakers[name] = breaker
            logger.debug("Registered circuit breaker", name=name)
        return breaker

    def get(self, name: str) -> CircuitBreaker | None:
        return self._breakers.get(name)

    def remove(self, name: str) -> bool:
        breaker = self._breakers.pop(name, None)
        if breaker is None:
            return False
        # Drop any pending reset timer with the breaker
        breaker.force_closed()
        return True

    def names(self) -> list[str]:
        return list(self._breakers)

    def reset_all(self) -> None:
        """Force every breaker back to CLOSED."""
        for breaker in self._breakers.values():
            breaker.force_closed()
        logger.info("Reset all circuit breakers", count=len(self._breakers))

    def get_all_metrics(self) -> dict[str, dict[str, Any]]:
        """Get metrics for all registered circuit breakers."""
        return {name: breaker.get_metrics() for name, breaker in self._breakers.items()}

    def __contains__(self, name: str) -> bool:
        return name in self._breakers

    def __len__(self) -> int:
        return len(self._breakers)
