"""
Structured logging configuration using structlog.

Library modules only call ``get_logger``; the embedding process calls
``setup_logging`` once at startup.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.typing import Processor

from readthrough.config import settings


def _level_number(log_level: Optional[str]) -> int:
    if log_level is None:
        log_level = settings.log_level
    return getattr(logging, log_level.upper(), logging.INFO)


def setup_logging(log_level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Level name; defaults to ``settings.log_level``
        json_logs: Force JSON (True) or console (False) output; by default
            JSON is used unless stderr is a terminal
    """
    level = _level_number(log_level)
    if json_logs is None:
        json_logs = not sys.stderr.isatty()

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_logs:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger, bound to ``module=name`` when given.

    The logger resolves configuration on first use, so module-level loggers
    created before ``setup_logging`` still honour it.
    """
    if name:
        return structlog.get_logger(module=name)
    return structlog.get_logger()


def log_context(**kwargs: Any) -> structlog.contextvars.bound_contextvars:
    """Bind key/values to every log event emitted inside the ``with`` block."""
    return structlog.contextvars.bound_contextvars(**kwargs)
