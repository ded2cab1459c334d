"""Tests for logging setup."""

import logging

import pytest
import structlog
from rich.logging import RichHandler

from journal_rag.config.logging import LOG_FILE_NAME, LoggerMixin, setup_logging
from journal_rag.config.settings import Settings


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:
    """Test handler wiring."""

    def test_console_and_file_handlers(self, test_settings: Settings, restore_logging):
        setup_logging(test_settings)

        handlers = logging.getLogger().handlers
        assert any(isinstance(handler, RichHandler) for handler in handlers)
        file_handlers = [h for h in handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert (test_settings.LOG_DIRECTORY / LOG_FILE_NAME).exists()

    def test_level_from_settings(self, test_settings: Settings, restore_logging):
        test_settings.LOG_LEVEL = "warning"

        setup_logging(test_settings)

        assert logging.getLogger().level == logging.WARNING


class TestLoggerMixin:
    def test_logger_named_after_class(self):
        class Component(LoggerMixin):
            pass

        assert Component().logger is not None
