"""Logging configuration for the HTTP Relay Gateway."""

import logging
import sys
from typing import Any, Dict, Optional, Union

import structlog

from relay_gateway import __version__
from relay_gateway.core.config import Settings, settings as default_settings

SERVICE_NAME = "http-relay-gateway"

# Never rendered, whatever a caller passes as event keys.
REDACTED_KEYS = frozenset({"api_key", "key", "apikey", "authorization", "x-api-key"})


def add_gateway_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp every event with the gateway identity and drop credential values."""
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", __version__)
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Setup structured logging for the relay gateway."""
    settings = settings or default_settings

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            add_gateway_context,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _get_renderer(settings),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.LOG_LEVEL),
    )


def _get_renderer(settings: Settings) -> Union[structlog.processors.JSONRenderer, structlog.dev.ConsoleRenderer]:
    if settings.LOG_FORMAT == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
