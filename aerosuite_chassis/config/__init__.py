"""
Configuration management for the AeroSuite chassis.

This module provides a unified configuration system that supports:
- YAML configuration files
- Environment variable overrides (``AEROSUITE_`` prefix, ``__`` for nesting)
- Type validation and conversion
- Environment-specific configs (dev, test, prod)
"""

import socket
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..exceptions import ConfigurationError


class Environment(str, Enum):
    """Supported deployment environments."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackend(str, Enum):
    """Service registry storage backends."""

    MEMORY = "memory"
    REDIS = "redis"
    MONGODB = "mongodb"


class ServiceConfig(BaseModel):
    """Defaults used when this process registers itself."""

    name: str = Field(default="aerosuite-service", description="Service name")
    version: str = Field(default="1.0.0", description="Service version")
    host: str | None = Field(default=None, description="Advertised host")
    port: int = Field(default=8080, description="Advertised port")
    protocol: str = Field(default="http", description="Advertised protocol")


class DiscoveryConfig(BaseModel):
    """Service registry timing configuration."""

    heartbeat_interval: float = Field(
        default=30.0, description="Seconds between heartbeat and health-check ticks"
    )
    timeout_threshold: float = Field(
        default=90.0, description="Seconds without heartbeat before a service is down"
    )
    hostname: str = Field(
        default_factory=socket.gethostname,
        description="Host recorded when a registration omits one",
    )

    @field_validator("heartbeat_interval", "timeout_threshold")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Intervals must be positive."""
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @model_validator(mode="after")
    def validate_threshold(self) -> "DiscoveryConfig":
        """A service cannot time out faster than it is able to heartbeat."""
        if self.timeout_threshold < self.heartbeat_interval:
            raise ValueError("timeout_threshold must be >= heartbeat_interval")
        return self


class StorageConfig(BaseModel):
    """Service registry storage configuration."""

    backend: StorageBackend = Field(default=StorageBackend.MEMORY)
    redis_url: str = Field(default="redis://localhost:6379/0")
    key_prefix: str = Field(default="aerosuite:discovery:")
    mongodb_url: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="aerosuite")
    mongodb_collection: str = Field(default="services")


class CircuitBreakerSettings(BaseModel):
    """Registry-wide circuit breaker defaults."""

    failure_threshold: int = Field(default=5, ge=1, description="Failures to open")
    reset_timeout: float = Field(
        default=60.0, gt=0, description="Seconds before an open circuit probes"
    )
    half_open_success_threshold: int = Field(
        default=2, ge=1, description="Probe successes needed to close"
    )
    call_timeout: float = Field(default=10.0, gt=0, description="Per-call timeout")
    half_open_max_calls: int | None = Field(
        default=1, ge=1, description="Concurrent probes allowed; None for unbounded"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    format: str = Field(default="json", description="Log format (json|text)")
    log_file: str | None = Field(default=None, description="Optional log file")


class ChassisConfig(BaseSettings):
    """Main chassis configuration class."""

    model_config = SettingsConfigDict(
        env_prefix="AEROSUITE_",
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Environment = Field(default=Environment.DEVELOPMENT)
    service: ServiceConfig = Field(default_factory=ServiceConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    circuit_breaker: CircuitBreakerSettings = Field(
        default_factory=CircuitBreakerSettings
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, file_path: str | Path) -> "ChassisConfig":
        """Load configuration from YAML file."""
        try:
            with open(file_path) as f:
                data = yaml.safe_load(f) or {}
            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {file_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML configuration: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}")

    @classmethod
    def from_env(cls) -> "ChassisConfig":
        """Load configuration from environment variables."""
        try:
            return cls()
        except ValidationError as e:
            raise ConfigurationError(
                f"Environment configuration validation failed: {e}"
            )

    def to_yaml(self, file_path: str | Path) -> None:
        """Save configuration to YAML file."""
        try:
            with open(file_path, "w") as f:
                yaml.safe_dump(
                    self.model_dump(mode="json"),
                    f,
                    default_flow_style=False,
                    indent=2,
                )
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}")


def load_config(
    yaml_file: str | Path | None = None,
    environment: Environment | None = None,
) -> ChassisConfig:
    """
    Load configuration with automatic source selection.

    Priority order:
    1. YAML file (if provided and present)
    2. Environment variables
    3. Defaults
    """
    if yaml_file and Path(yaml_file).exists():
        config = ChassisConfig.from_yaml(yaml_file)
    else:
        config = ChassisConfig.from_env()

    if environment:
        config.environment = environment

    return config
