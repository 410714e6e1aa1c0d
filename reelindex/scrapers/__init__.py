"""
ReelIndex scrapers.

Sources, extraction and per-session document caching. The orchestrators
live in reelindex.scrapers.search and reelindex.scrapers.orchestrator.
"""

from reelindex.scrapers.base import (
    FetchFailed,
    FieldAbsent,
    MediaKind,
    ReelIndexError,
    ScrapeFailed,
    ScrapeQuery,
    ScrapeSource,
    SearchFailed,
    SearchMethod,
)
from reelindex.scrapers.cache import CacheStats, DocumentCache, DocumentKey
from reelindex.scrapers.extractor import ExtractionRule, FollowRule, extract_field
from reelindex.scrapers.session import Fetcher, ScrapeSession

__all__ = [
    "CacheStats",
    "DocumentCache",
    "DocumentKey",
    "ExtractionRule",
    "FetchFailed",
    "Fetcher",
    "FieldAbsent",
    "FollowRule",
    "MediaKind",
    "ReelIndexError",
    "ScrapeFailed",
    "ScrapeQuery",
    "ScrapeSession",
    "ScrapeSource",
    "SearchFailed",
    "SearchMethod",
    "extract_field",
]
