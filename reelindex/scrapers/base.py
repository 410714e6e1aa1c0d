"""
Scrape source contract.

Every provider implements one ScrapeSource: which search methods and
fields it supports, a search operation and a per-field scrape operation.
The orchestrators only ever talk to this interface.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, FrozenSet, List, Optional

from reelindex.media.models import FieldId

if TYPE_CHECKING:
    from reelindex.scrapers.session import ScrapeSession

logger = logging.getLogger(__name__)


class SearchMethod(str, Enum):
    """How a source discovers candidate ids."""

    WEB_SEARCH = "web_search"  # site-restricted query through a web search engine
    NATIVE = "native"  # the provider's own search page or API


class MediaKind(str, Enum):
    """What a query is looking for."""

    MOVIE = "movie"
    TV = "tv"


@dataclass(frozen=True)
class ScrapeQuery:
    """A title/year lookup, optionally pinned to one method or source."""

    title: str
    year: Optional[int] = None
    media_kind: MediaKind = MediaKind.MOVIE
    search_method: Optional[SearchMethod] = None
    source: Optional[str] = None

    @property
    def text(self) -> str:
        return f"{self.title} {self.year}" if self.year else self.title


class _FieldAbsent:
    """Sentinel: the page exists but structurally lacks the field."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "FieldAbsent"


FieldAbsent = _FieldAbsent()


class ReelIndexError(Exception):
    """Base error for scrape failures."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class FetchFailed(ReelIndexError):
    """A document could not be fetched."""

    def __init__(
        self,
        message: str,
        url: str = "",
        status_code: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error)
        self.url = url
        self.status_code = status_code


class SearchFailed(ReelIndexError):
    """Candidate discovery failed for one source; try the next one."""

    def __init__(
        self,
        message: str,
        source: str = "",
        query: Optional[ScrapeQuery] = None,
        method: Optional[SearchMethod] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error)
        self.source = source
        self.query = query
        self.method = method


class ScrapeFailed(ReelIndexError):
    """Field extraction failed for one source; try the next one for that field."""

    def __init__(
        self,
        message: str,
        source: str = "",
        field: Optional[FieldId] = None,
        item_id: str = "",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error)
        self.source = source
        self.field = field
        self.item_id = item_id


class ScrapeSource(ABC):
    """
    Abstract base class for scrape sources.

    New providers plug in by subclassing this; neither orchestrator
    needs to change.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name, used for priority and provenance."""
        pass

    @property
    @abstractmethod
    def available_search_methods(self) -> FrozenSet[SearchMethod]:
        pass

    @property
    @abstractmethod
    def available_fields(self) -> FrozenSet[FieldId]:
        pass

    @abstractmethod
    async def search(self, query: ScrapeQuery, method: SearchMethod) -> List[str]:
        """
        Find candidate ids for a query.

        Returns:
            Ordered candidate ids; an empty list means "no results".

        Raises:
            SearchFailed: On network or parse errors.
        """
        pass

    @abstractmethod
    async def scrape_field(
        self,
        field: FieldId,
        candidate_id: str,
        session: "ScrapeSession",
    ) -> Any:
        """
        Extract one field for a candidate.

        Returns:
            The typed value, or FieldAbsent when the page lacks the field.

        Raises:
            ScrapeFailed: On network or parse errors.
        """
        pass

    def supports_field(self, field: FieldId) -> bool:
        return field in self.available_fields

    def supports_search(self, method: SearchMethod) -> bool:
        return method in self.available_search_methods

    def _check_search_method(self, query: ScrapeQuery, method: SearchMethod) -> None:
        if not self.supports_search(method):
            raise SearchFailed(
                f"{self.name} does not support {method.value} search",
                source=self.name,
                query=query,
                method=method,
            )

    async def close(self) -> None:
        """Release provider resources."""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
