"""
Core exceptions for the AeroSuite chassis.

This module defines the exception hierarchy used by the discovery and
resilience components, so callers can tell a rejected input apart from an
unreachable backend or a circuit that refused to run a call.
"""

from typing import Any, Dict, Optional


class ChassisError(Exception):
    """Base exception for all chassis-related errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary representation."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class ConfigurationError(ChassisError):
    """Raised when configuration is invalid or missing."""

    pass


class ValidationError(ChassisError):
    """Raised when caller input is rejected before any side effect."""

    pass


class StorageError(ChassisError):
    """Raised by storage adapters when the backing store fails."""

    def __init__(self, message: str, operation: str, backend: str) -> None:
        super().__init__(
            message,
            error_code="STORAGE_ERROR",
            details={"operation": operation, "backend": backend},
        )
        self.operation = operation
        self.backend = backend


class CircuitBreakerError(ChassisError):
    """Base class for calls refused or failed by a circuit breaker."""

    def __init__(
        self,
        message: str,
        breaker_name: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            error_code=error_code,
            details={"breaker": breaker_name, **(details or {})},
        )
        self.breaker_name = breaker_name


class CircuitOpenError(CircuitBreakerError):
    """Raised when a circuit breaker short-circuits a call."""

    def __init__(self, breaker_name: str) -> None:
        super().__init__(
            f"Circuit '{breaker_name}' is open",
            breaker_name,
            error_code="CIRCUIT_BREAKER_OPEN",
        )


class CircuitTimeoutError(CircuitBreakerError):
    """Raised when a protected call does not settle within its timeout."""

    def __init__(self, breaker_name: str, timeout: float) -> None:
        super().__init__(
            f"Call through circuit '{breaker_name}' timed out after {timeout}s",
            breaker_name,
            error_code="CIRCUIT_BREAKER_TIMEOUT",
            details={"timeout": timeout},
        )
        self.timeout = timeout
