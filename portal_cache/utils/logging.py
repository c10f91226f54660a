"""Structured logging configuration using structlog."""

import logging

import structlog
from rich.logging import RichHandler

from ..constants import CONSTANTS


def setup_logging(verbose: bool = False) -> None:
    """Configure structured logging with Rich formatting.

    Args:
        verbose: Enable debug logging if True, otherwise use ``LOG_LEVEL``
    """
    log_level = logging.DEBUG if verbose else logging.getLevelName(CONSTANTS.LOG_LEVEL.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            # Pretty print for development, JSON for production
            structlog.dev.ConsoleRenderer() if verbose else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )
