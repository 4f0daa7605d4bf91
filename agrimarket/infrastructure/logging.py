"""Structured logging setup.

structlog renders every event as one JSON line on stderr (or a readable
console line during development). Context bound with
``structlog.contextvars.bind_contextvars`` - request id, acting actor -
is merged into every event logged while handling a request.
"""

import logging
import sys

import structlog

from agrimarket.infrastructure.config import settings


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure stdlib logging and structlog processors.

    Args:
        level: Log level name; defaults to ``settings.log_level``.
        log_format: ``json`` or ``console``; defaults to ``settings.log_format``.
    """
    level_name = (level or settings.log_level).upper()
    renderer: structlog.types.Processor
    if (log_format or settings.log_format) == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
