"""
agentics.core.logging - structlog Setup
=========================================

Every module logs through ``structlog.get_logger()`` with snake_case event
names and key/value context (``logger.info("run_started", run_id=...)``).
This module configures the processor chain once, from the composition root.

Usage:
    >>> from agentics.core.logging import configure_logging
    >>> configure_logging("DEBUG")
"""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Minimum log level name ("DEBUG", "INFO", ...).
        json_output: Render JSON lines (production) instead of the
            colored console renderer (development).
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )
