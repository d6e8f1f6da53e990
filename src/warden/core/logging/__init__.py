"""Structured logging setup."""

import logging
from typing import TextIO

import structlog

from warden.config import Settings


def configure_logging(settings: Settings, file: TextIO | None = None) -> None:
    """Configure structlog for the application.

    Production renders JSON lines; every other environment gets the
    console renderer. Log lines go to ``file``, or stdout when omitted.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if settings.is_production
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[settings.log_level]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file),
        # Streams are swapped under test runners; only pin loggers in production
        cache_logger_on_first_use=settings.is_production,
    )
