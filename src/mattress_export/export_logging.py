"""Structured logging setup for the export tools."""

import logging
import sys
from typing import Union

import structlog
from structlog.stdlib import LoggerFactory

from .config import LogFormat


def configure_logging(level: str = "INFO", fmt: Union[LogFormat, str] = LogFormat.TEXT) -> None:
    """Configure structlog on top of stdlib logging.

    Called once by the CLI before any work starts. Output goes to stdout so
    progress lines and the final summary interleave in order.
    """
    fmt = LogFormat(fmt)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if fmt is LogFormat.JSON:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )
    # httpx logs every request at INFO; the client logs its own
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
