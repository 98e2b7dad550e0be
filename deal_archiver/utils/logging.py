"""Structured logging with cycle and record context."""

from __future__ import annotations

import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any

import structlog

# Context variables propagated into every log event of a task
cycle_id_var: ContextVar[str] = ContextVar("cycle_id", default="")
record_id_var: ContextVar[str] = ContextVar("record_id", default="")


def new_cycle_id() -> str:
    """Generate a short identifier for a polling cycle."""
    return str(uuid.uuid4())[:8]


def set_cycle_id(cycle_id: str) -> None:
    """Set the cycle identifier for the current context."""
    cycle_id_var.set(cycle_id)


def get_cycle_id() -> str:
    """Get the cycle identifier of the current context ('' if unset)."""
    return cycle_id_var.get()


def set_record_id(record_id: str) -> None:
    """Set the record identifier for the current context."""
    record_id_var.set(record_id)


def add_context_info(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add cycle and record identifiers to log events."""
    cycle_id = cycle_id_var.get()
    if cycle_id:
        event_dict.setdefault("cycle_id", cycle_id)

    record_id = record_id_var.get()
    if record_id:
        event_dict.setdefault("record_id", record_id)

    return event_dict


def add_timestamp(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add ISO format timestamp to log events."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def configure_logging(
    level: str = "info",
    format_type: str = "json",
    stream: Any = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (debug, info, warn, error)
        format_type: Output format ('json' or 'text')
        stream: Output stream (default: sys.stderr)
    """
    if stream is None:
        stream = sys.stderr

    level_map = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warn": logging.WARNING,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }
    log_level = level_map.get(level.lower(), logging.INFO)

    # Libraries (httpx, database drivers) log through the standard library
    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=max(log_level, logging.WARNING),
    )

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        add_timestamp,
        add_context_info,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream),
        # Module-level loggers are created at import; they must pick up
        # the configuration applied later by the CLI
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Optional logger name for context

    Returns:
        Configured structlog logger
    """
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()


# Initialize with defaults on import
configure_logging()
