"""Centralised logging configuration using structlog."""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog import stdlib
from structlog.contextvars import (
    bind_contextvars,
    clear_contextvars,
    unbind_contextvars,
)


_LOGGING_CONFIGURED = False


def configure_logging(level: int | str | None = None) -> None:
    """Initialise structlog with a JSON formatter and contextvars support.

    Calling it again with an explicit *level* only adjusts the root level.
    """

    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED and level is None:
        return
    if level is None:
        level = logging.INFO
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    if _LOGGING_CONFIGURED:
        logging.getLogger().setLevel(level)
        return

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_log_level,
            structlog.stdlib.filter_by_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=stdlib.BoundLogger,
        logger_factory=stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _LOGGING_CONFIGURED = True


def get_logger(name: str | None = None):
    """Return a structlog logger ensuring the configuration is ready."""

    configure_logging()
    return structlog.get_logger(name)


@contextmanager
def bind_context(**values: Any) -> Iterator[None]:
    """Bind and automatically clean request-scoped context variables."""

    if not values:
        yield
        return
    configure_logging()
    bind_contextvars(**values)
    try:
        yield
    finally:
        unbind_contextvars(*values.keys())


def reset_context() -> None:
    """Remove all bound context variables."""

    configure_logging()
    clear_contextvars()


__all__ = ["configure_logging", "get_logger", "bind_context", "reset_context"]
