"""
Logging Configuration for the Sales Star-Schema ETL

Structured logging through the stdlib root logger. Every event carries the
application name and environment; pipeline code binds ``run_id`` on top.
"""

import logging
import sys
from typing import Iterable, Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import ProcessorFormatter, add_log_level

from sales_star.config.settings import Settings, get_settings

# Chatty libraries never log below WARNING
QUIET_LOGGERS = ("prefect", "httpx", "httpcore", "asyncio", "faker")


def resolve_level(settings: Settings, override: Optional[str] = None) -> int:
    """Numeric level from an explicit override, the debug switch, or LOG_LEVEL"""
    if override:
        name = override
    elif settings.debug:
        name = "DEBUG"
    else:
        name = settings.monitoring.log_level
    return getattr(logging, name.upper(), logging.INFO)


def _quiet(names: Iterable[str], level: int) -> None:
    for name in names:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Configure structured logging for the pipeline.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
    """
    settings = get_settings()
    level = resolve_level(settings, log_level)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        JSONRenderer()
        if settings.monitoring.log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    # stderr only: the CLI prints run summaries on stdout
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    _quiet(QUIET_LOGGERS, level)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(app=settings.app_name, env=settings.app_env)

    structlog.get_logger(__name__).debug(
        "Logging configured",
        level=logging.getLevelName(level),
        format=settings.monitoring.log_format,
        version=settings.version,
    )