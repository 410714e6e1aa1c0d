"""
Per-session document cache.

Memoizes fetched documents by (source, page kind, item id) for the
lifetime of one scrape session. Fetches are single-flight per key: the
first caller fetches while concurrent callers for the same key wait on
that key's lock only.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional, Union

from reelindex.scrapers.base import FetchFailed

logger = logging.getLogger(__name__)


class DocumentKey(NamedTuple):
    """Cache key for one fetched page."""

    source: str
    page_kind: str
    item_id: str

    def __str__(self) -> str:
        return f"{self.source}:{self.page_kind}:{self.item_id}"


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    fetches: int = 0
    failures: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "fetches": self.fetches,
            "failures": self.failures,
            "hit_rate": round(self.hit_rate, 2),
        }


@dataclass(frozen=True)
class _Failure:
    error: FetchFailed


class DocumentCache:
    """
    Single-flight document cache scoped to one scrape session.

    A failed fetch is remembered for the rest of the session, so every
    field that needs the same page fails fast instead of waiting on the
    same unresponsive provider again.
    """

    def __init__(self):
        self._documents: Dict[DocumentKey, Union[str, _Failure]] = {}
        self._locks: Dict[DocumentKey, asyncio.Lock] = {}
        self.stats = CacheStats()
        self._closed = False

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, key: object) -> bool:
        return key in self._documents

    def peek(self, key: DocumentKey) -> Optional[str]:
        cached = self._documents.get(key)
        return cached if isinstance(cached, str) else None

    def _cached(self, key: DocumentKey) -> str:
        cached = self._documents[key]
        self.stats.hits += 1
        if isinstance(cached, _Failure):
            raise cached.error
        return cached

    async def get(
        self,
        key: DocumentKey,
        fetch: Callable[[], Awaitable[str]],
    ) -> str:
        """
        Return the cached document or fetch, store and return it.

        Raises:
            FetchFailed: If the fetch for this key failed in this session.
        """
        if self._closed:
            raise RuntimeError("Document cache used after its session ended")

        if key in self._documents:
            return self._cached(key)

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another caller may have completed the fetch while we waited
            if key in self._documents:
                return self._cached(key)

            self.stats.misses += 1
            self.stats.fetches += 1
            try:
                document = await fetch()
            except FetchFailed as e:
                self.stats.failures += 1
                self._documents[key] = _Failure(e)
                raise
            except Exception as e:
                self.stats.failures += 1
                error = FetchFailed(f"Fetch for {key} failed: {e}", original_error=e)
                self._documents[key] = _Failure(error)
                raise error from e

            self._documents[key] = document
            logger.debug(f"Cached {key} ({len(document)} chars)")
            return document

    def clear(self) -> None:
        """Discard every document; the cache stays usable."""
        self._documents.clear()
        self._locks.clear()

    def close(self) -> None:
        self.clear()
        self._closed = True
