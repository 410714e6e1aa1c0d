"""
Unit tests for logging setup and scrape events.
"""

import logging
import logging.handlers
from pathlib import Path

import pytest

from reelindex.config import LoggingConfig
from reelindex.utils.logging_setup import (
    SCRAPE_EVENT_LOGGER,
    get_logger,
    log_scrape_event,
    setup_logging,
    setup_logging_from_config,
)


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.unit
class TestSetupLogging:
    """Tests for setup_logging."""

    def test_file_and_console(self, temp_dir: Path, restore_root_logger):
        root = setup_logging(log_level="DEBUG", log_file_name="test.log", log_directory=temp_dir)

        assert root.level == logging.DEBUG
        assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
        assert any(type(h) is logging.StreamHandler for h in root.handlers)
        assert (temp_dir / "test.log").exists()

    def test_console_only(self, restore_root_logger):
        root = setup_logging(log_level="WARNING", log_to_file=False)

        assert root.level == logging.WARNING
        assert len(root.handlers) == 1

    def test_from_config(self, temp_dir: Path, restore_root_logger):
        config = LoggingConfig(level="ERROR", file=str(temp_dir / "sub" / "app.log"), log_to_console=False)

        root = setup_logging_from_config(config)

        assert root.level == logging.ERROR
        assert (temp_dir / "sub" / "app.log").exists()

    def test_get_logger(self):
        assert get_logger("reelindex.test").name == "reelindex.test"


@pytest.mark.unit
class TestScrapeEvents:
    """Tests for structured scrape-attempt events."""

    def test_event_attributes(self, caplog):
        with caplog.at_level(logging.DEBUG, logger=SCRAPE_EVENT_LOGGER):
            log_scrape_event("tmdb", "plot", "item-1", "populated", thread_id=7)

        record = caplog.records[-1]
        assert record.name == SCRAPE_EVENT_LOGGER
        assert record.levelno == logging.DEBUG
        assert record.scrape_source == "tmdb"
        assert record.scrape_field == "plot"
        assert record.scrape_item_id == "item-1"
        assert record.scrape_outcome == "populated"
        assert record.scrape_thread_id == 7
        assert "[7] tmdb:plot for item-1 -> populated" in record.getMessage()

    def test_failures_are_warnings(self, caplog):
        with caplog.at_level(logging.DEBUG, logger=SCRAPE_EVENT_LOGGER):
            log_scrape_event("cinema", "rating", "item-2", "failed", detail="HTTP 503")

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "HTTP 503" in record.getMessage()
