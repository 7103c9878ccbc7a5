"""Structured logging setup using structlog.

One processor chain feeds two renderers: coloured console output while
developing, JSON lines in production (``APP_ENV=production`` or
``json_output=True``).

Standard-library ``logging`` goes through the same formatter so uvicorn,
httpx and the openai SDK share the format.  The chattier client libraries
are held at WARNING unless the service itself runs at DEBUG.

Webhook workers bind ``event_id`` / ``owner_id`` with :func:`event_context`
so every line logged while a comment is processed carries them.
"""

import logging
import os
import sys
from contextlib import AbstractContextManager

import structlog

# Libraries that log every request at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore", "openai", "aiosqlite")


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _select_renderer(json_output: bool) -> structlog.types.Processor:
    if json_output or os.environ.get("APP_ENV", "development") == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR.
        json_output: Force JSON lines regardless of ``APP_ENV``.

    Returns:
        The root structlog logger.
    """
    level = logging.getLevelName(log_level.upper())
    processors = _shared_processors()
    renderer = _select_renderer(json_output)

    structlog.configure(
        processors=[*processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    library_level = logging.DEBUG if level == logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)


def event_context(**values: object) -> AbstractContextManager[None]:
    """Bind key/value pairs to every log line emitted inside the block.

    asyncio copies the context per task, so bindings made inside one webhook
    worker never leak into its siblings.
    """
    return structlog.contextvars.bound_contextvars(**values)
