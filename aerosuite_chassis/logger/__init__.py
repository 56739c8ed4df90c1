"""
Structured logging for the AeroSuite chassis.

structlog renders every record; the standard library root logger owns the
handlers so third-party libraries (redis, pymongo) end up in the same sink.
``configure_logging`` wires both from a ``ChassisConfig``.
"""

import logging
import logging.config
import sys
import traceback
from dataclasses import dataclass
from typing import Any

import structlog
from pythonjsonlogger.json import JsonFormatter

from ..config import ChassisConfig, LoggingConfig, LogLevel
from ..exceptions import ConfigurationError

ROTATE_BYTES = 10 * 1024 * 1024
ROTATE_BACKUPS = 5


class ServiceInfoProcessor:
    """Stamps the owning service's name and version on each record."""

    def __init__(self, service_name: str, service_version: str = "1.0.0"):
        self.service_name = service_name
        self.service_version = service_version

    def __call__(self, logger, method_name, event_dict):
        event_dict.setdefault("service_name", self.service_name)
        event_dict.setdefault("service_version", self.service_version)
        return event_dict


class ExceptionProcessor:
    """Turns ``exc_info`` into a JSON-friendly ``exception`` mapping."""

    def __call__(self, logger, method_name, event_dict):
        exc_info = event_dict.pop("exc_info", None)
        if exc_info is True:
            exc_info = sys.exc_info()
        elif isinstance(exc_info, BaseException):
            exc_info = (type(exc_info), exc_info, exc_info.__traceback__)

        if exc_info and exc_info[0] is not None:
            exc_type, exc, tb = exc_info
            event_dict["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": "".join(traceback.format_tb(tb)) if tb else "",
            }
        return event_dict


@dataclass
class LogConfig:
    """Resolved logging options for one service process."""

    service_name: str
    service_version: str = "1.0.0"
    level: LogLevel = LogLevel.INFO
    format_type: str = "json"
    log_file: str | None = None

    @classmethod
    def from_settings(
        cls, settings: LoggingConfig, service_name: str, service_version: str = "1.0.0"
    ) -> "LogConfig":
        """Build a LogConfig from the ``logging`` section of ChassisConfig."""
        return cls(
            service_name=service_name,
            service_version=service_version,
            level=settings.level,
            format_type=settings.format,
            log_file=settings.log_file,
        )

    @classmethod
    def from_chassis_config(cls, config: ChassisConfig) -> "LogConfig":
        return cls.from_settings(
            config.logging, config.service.name, config.service.version
        )

    @property
    def json_output(self) -> bool:
        return self.format_type == "json"


def _handler_config(config: LogConfig) -> dict[str, dict[str, Any]]:
    formatter = "json" if config.json_output else "plain"
    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": formatter,
            "stream": sys.stdout,
        },
    }
    if config.log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": formatter,
            "filename": config.log_file,
            "maxBytes": ROTATE_BYTES,
            "backupCount": ROTATE_BACKUPS,
        }
    return handlers


def setup_logging(config: LogConfig) -> None:
    """
    Configure structlog and the root logger.

    Args:
        config: LogConfig describing level, format and optional log file

    Raises:
        ConfigurationError: if the handlers cannot be built, e.g. the log
            file's directory does not exist
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if config.json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            ServiceInfoProcessor(config.service_name, config.service_version),
            ExceptionProcessor(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    handlers = _handler_config(config)
    try:
        logging.config.dictConfig(
            {
                "version": 1,
                "disable_existing_loggers": False,
                "formatters": {
                    "json": {
                        "()": JsonFormatter,
                        "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
                    },
                    "plain": {"format": "%(message)s"},
                },
                "handlers": handlers,
                "root": {"handlers": list(handlers), "level": config.level.value},
            }
        )
    except (ValueError, TypeError, AttributeError, ImportError) as e:
        raise ConfigurationError(f"Failed to configure logging: {e}")


def configure_logging(config: ChassisConfig) -> LogConfig:
    """Set up logging for the service described by ``config``."""
    log_config = LogConfig.from_chassis_config(config)
    setup_logging(log_config)
    return log_config


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger bound to ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)
