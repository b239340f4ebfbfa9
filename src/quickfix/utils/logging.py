"""Structured logging configuration using structlog.

Every record carries the store context bound for the current command
(database location and command name), so log lines from concurrent shells
writing to the same database can be told apart.
"""

import logging
import sys
from functools import lru_cache
from typing import Any, TextIO
from uuid import UUID

import structlog
from structlog.types import EventDict, Processor

from quickfix.config import Settings, get_settings


def stringify_identifiers(
    logger: logging.Logger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Render UUID values (issue_id=..., ids=[...]) as plain strings."""
    for key, value in event_dict.items():
        if isinstance(value, UUID):
            event_dict[key] = str(value)
        elif isinstance(value, (set, frozenset, list, tuple)) and any(isinstance(item, UUID) for item in value):
            event_dict[key] = sorted(str(item) for item in value)
    return event_dict


def bind_store_context(database: str, command: str | None = None) -> None:
    """Attach the store in use to every following log record.

    Args:
        database: Database file path, or ":memory:"
        command: Shell command being run (optional)
    """
    context: dict[str, Any] = {"database": database}
    if command:
        context["command"] = command
    structlog.contextvars.bind_contextvars(**context)


def clear_store_context() -> None:
    structlog.contextvars.unbind_contextvars("database", "command")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        stringify_identifiers,
    ]


def _handler(handler: logging.Handler, renderer: Processor, pre_chain: list[Processor]) -> logging.Handler:
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain))
    return handler


def setup_logging(settings: Settings | None = None, use_stderr: bool = False) -> None:
    """Configure structured logging based on settings.

    Args:
        settings: Settings to use (cached settings if None)
        use_stderr: Write log records to stderr so stdout stays free for command output
    """
    settings = settings or get_settings()
    shared = _shared_processors()
    stream: TextIO = sys.stderr if use_stderr else sys.stdout

    if settings.log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        # No colors when sharing a terminal stream with command output
        renderer = structlog.dev.ConsoleRenderer(colors=not use_stderr)

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(_handler(logging.StreamHandler(stream), renderer, shared))
    root_logger.setLevel(getattr(logging, settings.log_level))

    # The log file is always JSON, whatever the console format
    if settings.log_file:
        root_logger.addHandler(
            _handler(logging.FileHandler(settings.log_file), structlog.processors.JSONRenderer(), shared)
        )

    # aiosqlite logs every statement at DEBUG
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


@lru_cache(maxsize=128)
def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a cached structured logger by name.

    Args:
        name: Logger name, typically __name__

    Returns:
        Bound structured logger
    """
    return structlog.get_logger(name)
