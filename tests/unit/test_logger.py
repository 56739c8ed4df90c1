"""
Unit tests for logging setup and the exception taxonomy.
"""

import logging
import logging.handlers

import pytest
import structlog

from pythonjsonlogger.json import JsonFormatter

from aerosuite_chassis.config import (
    ChassisConfig,
    LoggingConfig,
    LogLevel,
    ServiceConfig,
)
from aerosuite_chassis.exceptions import (
    CircuitOpenError,
    ConfigurationError,
    StorageError,
    ValidationError,
)
from aerosuite_chassis.logger import (
    ExceptionProcessor,
    LogConfig,
    ServiceInfoProcessor,
    configure_logging,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    structlog.reset_defaults()
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestLogging:
    """Test logging setup."""

    def test_setup_json_logging(self, tmp_path):
        log_file = tmp_path / "chassis.log"
        config = LogConfig(
            service_name="inventory-service",
            level=LogLevel.DEBUG,
            log_file=str(log_file),
        )

        setup_logging(config)
        get_logger("tests.logging").info("Registered service instance", port=8080)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert any(
            isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers
        )

    def test_from_settings(self):
        config = LogConfig.from_settings(
            LoggingConfig(level=LogLevel.WARNING, format="text"), "pricing-service"
        )

        assert config.service_name == "pricing-service"
        assert config.level == LogLevel.WARNING
        assert config.format_type == "text"

    def test_configure_logging_from_chassis_config(self):
        config = ChassisConfig(
            service=ServiceConfig(name="pricing-service", version="2.1.0"),
            logging=LoggingConfig(level=LogLevel.WARNING),
        )

        log_config = configure_logging(config)

        assert log_config.service_name == "pricing-service"
        assert log_config.service_version == "2.1.0"
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert any(isinstance(h.formatter, JsonFormatter) for h in root.handlers)

    def test_invalid_log_file_raises_configuration_error(self, tmp_path):
        config = LogConfig(
            service_name="inventory-service",
            log_file=str(tmp_path / "missing-dir" / "chassis.log"),
        )

        with pytest.raises(ConfigurationError):
            setup_logging(config)

    def test_service_info_processor(self):
        processor = ServiceInfoProcessor("pricing-service", "2.0.0")

        event = processor(None, "info", {"event": "hello"})

        assert event["service_name"] == "pricing-service"
        assert event["service_version"] == "2.0.0"

    def test_exception_processor(self):
        try:
            raise StorageError("redis down", "get_service", "redis")
        except StorageError as e:
            event = ExceptionProcessor()(None, "error", {"event": "x", "exc_info": e})

        assert event["exception"]["type"] == "StorageError"
        assert "redis down" in event["exception"]["message"]


class TestExceptions:
    """Error taxonomy."""

    def test_to_dict(self):
        error = ValidationError("Service name is required", "SERVICE_NAME_REQUIRED")

        assert error.to_dict() == {
            "error": "ValidationError",
            "message": "Service name is required",
            "error_code": "SERVICE_NAME_REQUIRED",
            "details": {},
        }
        assert str(error) == "[SERVICE_NAME_REQUIRED] Service name is required"

    def test_circuit_open_error(self):
        error = CircuitOpenError("pricing-service")

        assert error.message == "Circuit 'pricing-service' is open"
        assert error.breaker_name == "pricing-service"
        assert error.details == {"breaker": "pricing-service"}
