"""Logging configuration for Journal RAG."""

import logging
from typing import List, Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

from .settings import Settings

LOG_FILE_NAME = "journal_rag.log"


def _handlers(settings: Settings) -> List[logging.Handler]:
    settings.LOG_DIRECTORY.mkdir(parents=True, exist_ok=True)
    console = RichHandler(
        console=Console(stderr=True),
        show_time=True,
        show_path=settings.DEBUG,
        markup=False,
        rich_tracebacks=True,
    )
    file_handler = logging.FileHandler(settings.LOG_DIRECTORY / LOG_FILE_NAME, encoding="utf-8")
    return [console, file_handler]


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Route structlog through stdlib logging with a Rich console and a log file.

    Debug mode renders key/value events for humans; otherwise every event is
    a JSON line so the file can be shipped to a log collector.
    """
    if settings is None:
        settings = Settings()

    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s", handlers=_handlers(settings), force=True)

    renderer = (
        structlog.dev.ConsoleRenderer(colors=False)
        if settings.DEBUG
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class LoggerMixin:
    """Gives a class ``self.logger`` named after its module and class."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        return get_logger(f"{self.__class__.__module__}.{self.__class__.__name__}")
