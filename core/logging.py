"""Logging setup shared by the API process and the query pipeline.

Framework logs go through stdlib logging; pipeline events are emitted with
structlog so stage outcomes carry key/value context.
"""
import logging
import sys

import structlog

from core.settings import AppSettings


def configure_logging(app_settings: AppSettings) -> None:
    level = getattr(logging, app_settings.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if app_settings.JSON_LOGS
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
