"""
Test Fixtures

Shared test doubles for fetchers and scrape sources.
"""

from .fakes import FakeFetcher, FakeSource, scrape_failed, search_failed

__all__ = [
    "FakeFetcher",
    "FakeSource",
    "scrape_failed",
    "search_failed",
]
