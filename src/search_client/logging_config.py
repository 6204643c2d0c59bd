"""Structured logging configuration using structlog.

The client only logs through the "search_client" logger tree. Applications
that already configure structlog can ignore this module; everyone else can
call configure_logging() (or set SEARCH_CONFIGURE_LOGGING=true) to get JSON
lines in production and console output in development.
"""

import logging
import sys
from collections.abc import Mapping
from typing import IO, Optional

import structlog
from structlog.types import EventDict, WrappedLogger

from search_client.config import Settings
from search_client.helpers import redact_secret


LOGGER_NAME = "search_client"

# Event keys whose values are credentials
SECRET_KEYS = frozenset({"api_key", "parent_api_key", "key", "x-algolia-api-key"})


def add_client_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Tag every log event with the library name."""
    event_dict["lib"] = "search-client"
    return event_dict


def mask_credentials(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace credential values (top level and in header maps) by their prefix."""
    for name, value in list(event_dict.items()):
        if name.lower() in SECRET_KEYS and isinstance(value, str):
            event_dict[name] = redact_secret(value)
        elif isinstance(value, Mapping):
            event_dict[name] = {
                k: redact_secret(v) if str(k).lower() in SECRET_KEYS and isinstance(v, str) else v
                for k, v in value.items()
            }
    return event_dict


def configure_logging(
    settings: Optional[Settings] = None, stream: Optional[IO[str]] = None
) -> logging.Handler:
    """Configure structlog and attach one handler to the client's logger tree.

    Args:
        settings: Source of LOG_LEVEL and ENVIRONMENT (default: Settings())
        stream: Output stream (default: stdout)

    Returns:
        The installed handler (replaces a handler installed by a previous call)
    """
    settings = settings or Settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    is_production = settings.ENVIRONMENT.lower() == "production"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_client_context,
        mask_credentials,
    ]

    if is_production:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )
    handler.set_name("search_client")

    client_logger = logging.getLogger(LOGGER_NAME)
    for existing in list(client_logger.handlers):
        if existing.get_name() == "search_client":
            client_logger.removeHandler(existing)
    client_logger.addHandler(handler)
    client_logger.setLevel(log_level)
    client_logger.propagate = False

    # The dispatcher logs every attempt itself
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    structlog.get_logger(__name__).debug(
        "Logging configured",
        log_level=settings.LOG_LEVEL,
        environment=settings.ENVIRONMENT,
        renderer="json" if is_production else "console",
    )
    return handler
