"""
Search orchestration.

Fans one query out to every enabled (source, search method) pair at once
and collects candidate ids per source as each search completes.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from reelindex.config import ScrapingConfig
from reelindex.scrapers.base import ScrapeQuery, ScrapeSource, SearchFailed, SearchMethod

logger = logging.getLogger(__name__)

ResultCallback = Callable[[str, List[str]], None]


@dataclass
class SearchResults:
    """Candidate ids per source for one query."""

    query: ScrapeQuery
    candidates: Dict[str, List[str]] = field(default_factory=dict)
    failures: Dict[str, List[SearchFailed]] = field(default_factory=dict)
    picks: Dict[str, str] = field(default_factory=dict)

    def add(self, source: str, ids: Sequence[str]) -> None:
        """Merge ids for a source, keeping first-seen order."""
        merged = self.candidates.setdefault(source, [])
        for candidate in ids:
            if candidate not in merged:
                merged.append(candidate)

    def add_failure(self, error: SearchFailed) -> None:
        self.failures.setdefault(error.source, []).append(error)

    @property
    def has_results(self) -> bool:
        return any(self.candidates.values())

    def first_result(self) -> Dict[str, str]:
        """Automatic pick: the first candidate of every source that has one."""
        return {source: ids[0] for source, ids in self.candidates.items() if ids}

    def pick(self, source: str, candidate_id: str) -> None:
        """Record an interactive choice for one source."""
        self.picks[source] = candidate_id

    def selected(self) -> Dict[str, str]:
        """Interactive picks, falling back to the first result per source."""
        return {**self.first_result(), **self.picks}


class SearchOrchestrator:
    """
    Concurrent candidate discovery across sources.

    Each unit of work is isolated: a failure or timeout in one source is
    recorded against that source and never cancels the others. There is
    no global timeout; each unit is bounded by search_timeout.
    """

    def __init__(
        self,
        sources: Sequence[ScrapeSource],
        config: Optional[ScrapingConfig] = None,
    ):
        self.sources = list(sources)
        self.config = config or ScrapingConfig()

    def units(self, query: ScrapeQuery) -> List[Tuple[ScrapeSource, SearchMethod]]:
        """(source, method) pairs a query fans out to."""
        pairs = []
        for source in self.sources:
            if query.source and source.name != query.source:
                continue
            for method in sorted(source.available_search_methods, key=lambda m: m.value):
                if query.search_method and method != query.search_method:
                    continue
                pairs.append((source, method))
        return pairs

    async def _run_unit(
        self,
        source: ScrapeSource,
        method: SearchMethod,
        query: ScrapeQuery,
    ) -> Tuple[ScrapeSource, SearchMethod, Optional[List[str]], Optional[SearchFailed]]:
        try:
            ids = await asyncio.wait_for(source.search(query, method), self.config.search_timeout)
            return source, method, list(ids), None
        except asyncio.TimeoutError as e:
            error = SearchFailed(
                f"{source.name} {method.value} search timed out after {self.config.search_timeout}s",
                source=source.name,
                query=query,
                method=method,
                original_error=e,
            )
        except SearchFailed as e:
            error = e
            error.source = error.source or source.name
        except Exception as e:
            error = SearchFailed(
                f"{source.name} {method.value} search raised {type(e).__name__}: {e}",
                source=source.name,
                query=query,
                method=method,
                original_error=e,
            )
        return source, method, None, error

    async def search(
        self,
        query: ScrapeQuery,
        on_result: Optional[ResultCallback] = None,
    ) -> SearchResults:
        """
        Run the query against every enabled source.

        Args:
            query: Title/year query.
            on_result: Called with (source name, ids) as each unit completes.

        Returns:
            SearchResults; empty when no source is enabled.
        """
        results = SearchResults(query=query)
        units = self.units(query)
        if not units:
            logger.info(f"No enabled sources for search {query.text!r}")
            return results

        logger.info(f"Searching {len(units)} source/method pairs for {query.text!r}")

        for next_done in asyncio.as_completed(
            [self._run_unit(source, method, query) for source, method in units]
        ):
            source, method, ids, error = await next_done

            if error is not None:
                logger.warning(f"Search failed on {source.name} ({method.value}): {error}")
                results.add_failure(error)
                continue

            logger.debug(f"{source.name} ({method.value}) returned {len(ids)} candidates")
            results.add(source.name, ids)
            if on_result is not None:
                try:
                    on_result(source.name, ids)
                except Exception as e:
                    logger.warning(f"Search result callback error: {e}")

        return results
