"""
Scrape sessions.

A session is one orchestrator run for one item. It owns the document
cache for that run; nothing is shared across items.
"""

import itertools
import logging
from typing import Optional, Protocol

from reelindex.scrapers.cache import DocumentCache, DocumentKey

logger = logging.getLogger(__name__)

_thread_ids = itertools.count(1)


class Fetcher(Protocol):
    """Anything that can turn a URL into a raw document."""

    async def fetch(self, url: str) -> str:
        """Raises FetchFailed on failure."""
        ...


class ScrapeSession:
    """
    Scope of one item's scrape.

    Usage:
        async with ScrapeSession(record.id, fetcher) as session:
            await orchestrator.scrape(record, ids, session=session)
    """

    def __init__(self, item_id: str, fetcher: Fetcher, thread_id: Optional[int] = None):
        self.item_id = item_id
        self.fetcher = fetcher
        self.thread_id = thread_id if thread_id is not None else next(_thread_ids)
        self.cache = DocumentCache()

    async def get_document(
        self,
        source: str,
        page_kind: str,
        candidate_id: str,
        url: str,
    ) -> str:
        """Fetch a provider page once per session."""
        key = DocumentKey(source, page_kind, candidate_id)

        async def _fetch() -> str:
            logger.debug(f"[{self.thread_id}] Fetching {key}: {url}")
            return await self.fetcher.fetch(url)

        return await self.cache.get(key, _fetch)

    def close(self) -> None:
        logger.debug(
            f"[{self.thread_id}] Session for {self.item_id} closed: {self.cache.stats.to_dict()}"
        )
        self.cache.close()

    async def __aenter__(self) -> "ScrapeSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
