"""
Structured logging configuration (structlog)

Called once per process: by the API at import time and by the Celery
worker on process init. Production renders JSON lines, development a
coloured console.
"""
import logging

import structlog

from packages.common.config import get_settings


def configure_logging(log_level: str = None, json_output: bool = None) -> None:
    """
    Configure structlog for the current process.

    Args:
        log_level: Minimum level name (defaults to LOG_LEVEL setting)
        json_output: Force JSON rendering (defaults to True outside development)
    """
    settings = get_settings()
    level_name = (log_level or settings.log_level).upper()
    if json_output is None:
        json_output = settings.environment != "development"

    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name, logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
