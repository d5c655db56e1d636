"""
Structured logging for transit-spine.

Every stage of a run (ingest, diff, publish) logs through structlog so that a
single run can be followed by its ``run_id`` across partitions and workers.

Manifesto:
    A nightly sync touches hundreds of partitions concurrently. Plain text
    logs interleave into noise; structured events do not.

    - **Structured:** key/value events, JSON in production
    - **Correlated:** run_id, record_type and partition bound per worker
    - **Flexible:** colored console output when attached to a TTY

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="transit-spine")
            │
            ▼
        structlog processor chain
          1. TimeStamper(iso)
          2. merge_contextvars      ← bind_context / LogContext
          3. add_log_level
          4. service metadata
          5. ECS field names (JSON only)
          6. JSONRenderer | ConsoleRenderer

Examples:
    >>> from transit_spine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> with LogContext(run_id="20250101120000000"):
    ...     logger.info("diff.partition.start", region_id="1")

Tags:
    logging, structlog, observability, transit-spine
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "transit-spine"


def _add_service_metadata(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service.name", _SERVICE_NAME)
    return event_dict


def _elasticsearch_compatible(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Rename timestamp/level to their ECS field names."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "transit-spine",
    add_timestamp: bool = True,
    stream: TextIO | None = None,
    cache_loggers: bool = True,
) -> None:
    """Configure structured logging for the process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs
        add_timestamp: Include ISO timestamp in logs
        stream: Output stream (default stdout); the CLI logs to stderr
        cache_loggers: Cache bound loggers on first use; off when the
            stream can be swapped between calls (CLI test runners)
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not (stream or sys.stdout).isatty()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service_metadata,
    ]

    if add_timestamp:
        shared_processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))

    if json_format:
        shared_processors.append(_elasticsearch_compatible)
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=cache_loggers,
    )

    # stdlib loggers (sqlite3 warnings, asyncio) go to the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=getattr(logging, level.upper()),
    )


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger, usually ``get_logger(__name__)``.

    The name is bound as ``logger_name``; PrintLogger has no name of its own.
    """
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(logger_name=name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs of this task/thread."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(run_id="20250101120000000", record_type="Route"):
            logger.info("diff.partition.start")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())

    async def __aenter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    async def __aexit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "LogContext",
]
