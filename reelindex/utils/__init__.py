"""Utility helpers."""

from reelindex.utils.logging_setup import get_logger, log_scrape_event, setup_logging

__all__ = ["get_logger", "log_scrape_event", "setup_logging"]
