"""Structured logging configuration using structlog.

Provides JSON-formatted logs with consistent context including:
- parse_id: Correlation ID for one parse_epub / open_epub invocation
- source: Human-readable name of the archive being parsed (file name or "<bytes>")
- timestamp: ISO8601 formatted timestamp

Logs are for operators. Findings about the EPUB itself are reported through
Diagnostics and returned to the caller, never only logged.

Usage:
    from epubkit.logging import get_logger, configure_logging

    # Configure once at startup (format and level from EPUBKIT_LOG_JSON / EPUBKIT_LOG_LEVEL)
    configure_logging()

    # Get a logger for a module
    logger = get_logger(__name__)
    logger.info("something_happened", extra_field="value")
"""

import logging
import sys
from contextvars import ContextVar

import structlog

from epubkit.config import get_settings

# Context variables for parse-scoped logging
parse_id_var: ContextVar[str | None] = ContextVar("parse_id", default=None)
source_var: ContextVar[str | None] = ContextVar("source", default=None)


def add_parse_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Add parse context to all log entries.

    Injects all non-None ContextVar values into the log event dict.
    """
    parse_id = parse_id_var.get()
    source = source_var.get()

    if parse_id:
        event_dict["parse_id"] = parse_id
    if source:
        event_dict["source"] = source

    return event_dict


def configure_logging(json_format: bool | None = None, level: str | None = None) -> None:
    """Configure structlog for the library.

    Args:
        json_format: If True, output JSON logs. If False, output console-friendly logs.
            Defaults to EPUBKIT_LOG_JSON.
        level: Root log level name. Defaults to EPUBKIT_LOG_LEVEL.
    """
    if json_format is None or level is None:
        settings = get_settings()
        json_format = settings.log_json if json_format is None else json_format
        level = settings.log_level if level is None else level

    # Shared processors for both stdlib and structlog loggers
    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_parse_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Silence noisy loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger for the given name.

    Args:
        name: Logger name (typically __name__).

    Returns:
        A bound structlog logger.
    """
    return structlog.get_logger(name)


def set_parse_context(parse_id: str | None, source: str | None = None) -> None:
    """Set parse context for the current async context.

    Args:
        parse_id: The parse correlation ID.
        source: Archive name (optional).
    """
    parse_id_var.set(parse_id)
    if source is not None:
        source_var.set(source)


def clear_parse_context() -> None:
    """Clear all parse-scoped context at the end of a parse."""
    parse_id_var.set(None)
    source_var.set(None)


def get_parse_id() -> str | None:
    """Get the current parse ID from context."""
    return parse_id_var.get()
