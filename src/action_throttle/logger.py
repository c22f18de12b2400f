"""structlog based logging setup."""

from __future__ import annotations

import logging
import sys

import structlog

from .config import LogSection


def configure_logging(section: LogSection | None = None) -> structlog.stdlib.BoundLogger:
    """Configure structlog for the throttle and return a bound logger.

    Args:
        section: log settings; defaults to INFO level with JSON output.

    Returns:
        a structlog.stdlib.BoundLogger bound to ``component=action_throttle``
    """
    section = section or LogSection()
    log_level = getattr(logging, section.level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    renderer: structlog.types.Processor
    if section.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.stdlib.get_logger("action_throttle").bind(component="action_throttle")
