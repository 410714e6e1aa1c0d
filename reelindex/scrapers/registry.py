"""
Source registry.

Builds the enabled scrape sources from configuration in user priority
order.
"""

import logging
from typing import Dict, List, Optional

from reelindex.config import ReelIndexConfig, get_config
from reelindex.scrapers.base import ScrapeSource
from reelindex.scrapers.regex_source import RegexScrapeSource
from reelindex.scrapers.session import Fetcher
from reelindex.scrapers.tmdb import TMDBSource

logger = logging.getLogger(__name__)


def order_by_priority(sources: List[ScrapeSource], priority: List[str]) -> List[ScrapeSource]:
    """
    Sort sources by a priority list of names.

    Sources missing from the list keep their relative order after the
    listed ones.
    """
    rank = {name: i for i, name in enumerate(priority)}
    return sorted(sources, key=lambda s: rank.get(s.name, len(rank)))


def build_sources(
    fetcher: Fetcher,
    config: Optional[ReelIndexConfig] = None,
) -> List[ScrapeSource]:
    """
    Create every enabled source.

    Args:
        fetcher: Shared document fetcher.
        config: Configuration (defaults to the global config).

    Returns:
        Enabled sources in priority order.
    """
    config = config or get_config()
    sources: Dict[str, ScrapeSource] = {}

    if config.tmdb.enabled:
        if config.tmdb.api_key:
            sources["tmdb"] = TMDBSource(
                api_key=config.tmdb.api_key,
                fetcher=fetcher,
                language=config.tmdb.language,
                include_adult=config.tmdb.include_adult,
                max_results=config.scraping.max_results,
            )
        else:
            logger.warning("TMDB enabled without an API key, skipping")

    for definition in config.providers.values():
        if not definition.enabled:
            continue
        if definition.name in sources:
            logger.warning(f"Duplicate source name {definition.name!r}, skipping")
            continue
        sources[definition.name] = RegexScrapeSource(
            definition,
            fetcher=fetcher,
            web_search_url=config.scraping.web_search_url,
            max_results=config.scraping.max_results,
        )

    ordered = order_by_priority(list(sources.values()), config.scraping.source_priority)
    for source in ordered:
        if source.name not in config.scraping.source_priority:
            logger.info(f"Source {source.name!r} not in priority list, using it last")

    logger.info(f"Enabled sources: {[s.name for s in ordered]}")
    return ordered
