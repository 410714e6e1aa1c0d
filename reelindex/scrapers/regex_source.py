"""
Pattern-driven scrape source.

One engine for every HTML provider: page URLs, search rules and field
patterns all come from a ProviderDefinition, so supporting a new site is
a configuration change.
"""

import asyncio
import logging
import re
from typing import Any, FrozenSet, List, Optional
from urllib.parse import quote_plus

from reelindex.config import ProviderDefinition
from reelindex.media.models import FieldId
from reelindex.scrapers.base import (
    FetchFailed,
    FieldAbsent,
    ScrapeFailed,
    ScrapeQuery,
    ScrapeSource,
    SearchFailed,
    SearchMethod,
)
from reelindex.scrapers.extractor import (
    ExtractionRule,
    extract_field,
    follow_references,
    merge_followed,
)
from reelindex.scrapers.session import Fetcher, ScrapeSession

logger = logging.getLogger(__name__)


class RegexScrapeSource(ScrapeSource):
    """
    Scrape source configured entirely by a ProviderDefinition.

    Args:
        definition: Provider pages, search rule and field patterns.
        fetcher: Used for search requests (field pages go through the
            session so they are cached).
        web_search_url: Search engine URL template with a {query}
            placeholder, used for WEB_SEARCH.
        max_results: Cap on candidate ids returned by one search.
    """

    def __init__(
        self,
        definition: ProviderDefinition,
        fetcher: Fetcher,
        web_search_url: str = "",
        max_results: int = 10,
    ):
        self.definition = definition
        self.fetcher = fetcher
        self.web_search_url = web_search_url
        self.max_results = max_results
        self._id_pattern: Optional["re.Pattern[str]"] = (
            re.compile(definition.search.id_pattern) if definition.search.id_pattern else None
        )

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def available_search_methods(self) -> FrozenSet[SearchMethod]:
        methods = set()
        if self._id_pattern is not None:
            if self.definition.search.site and self.web_search_url:
                methods.add(SearchMethod.WEB_SEARCH)
            if self.definition.search.url:
                methods.add(SearchMethod.NATIVE)
        return frozenset(methods)

    @property
    def available_fields(self) -> FrozenSet[FieldId]:
        return frozenset(self.definition.fields)

    def search_url(self, query: ScrapeQuery, method: SearchMethod) -> str:
        if method == SearchMethod.WEB_SEARCH:
            terms = f"site:{self.definition.search.site} {query.text}"
            return self.web_search_url.format(query=quote_plus(terms))
        return self.definition.search.url.format(
            query=quote_plus(query.text),
            title=quote_plus(query.title),
            year=query.year or "",
        )

    def parse_candidates(self, document: str) -> List[str]:
        """Candidate ids in document order, de-duplicated."""
        if self._id_pattern is None:
            return []
        ids: List[str] = []
        for match in self._id_pattern.finditer(document):
            candidate = match.group("id")
            if candidate and candidate not in ids:
                ids.append(candidate)
                if len(ids) >= self.max_results:
                    break
        return ids

    async def search(self, query: ScrapeQuery, method: SearchMethod) -> List[str]:
        self._check_search_method(query, method)
        url = self.search_url(query, method)

        try:
            document = await self.fetcher.fetch(url)
            candidates = self.parse_candidates(document)
        except (FetchFailed, IndexError, re.error) as e:
            raise SearchFailed(
                f"{self.name} {method.value} search for {query.text!r} failed: {e}",
                source=self.name,
                query=query,
                method=method,
                original_error=e,
            ) from e

        logger.debug(f"{self.name} {method.value} search {query.text!r}: {len(candidates)} candidates")
        return candidates

    async def scrape_field(
        self,
        field: FieldId,
        candidate_id: str,
        session: ScrapeSession,
    ) -> Any:
        rule = self.definition.fields.get(field)
        if rule is None:
            raise ScrapeFailed(
                f"{self.name} has no rule for {field.value}",
                source=self.name,
                field=field,
                item_id=session.item_id,
            )

        template = self.definition.urls.get(rule.page)
        if template is None:
            raise ScrapeFailed(
                f"{self.name} has no URL for page {rule.page!r}",
                source=self.name,
                field=field,
                item_id=session.item_id,
            )

        try:
            document = await session.get_document(
                self.name, rule.page, candidate_id, template.format(id=candidate_id)
            )
            if rule.follow is not None:
                return await self._follow(field, rule, candidate_id, document, session)
            return extract_field(field, rule, document)
        except (FetchFailed, ValueError, IndexError, KeyError, re.error) as e:
            raise ScrapeFailed(
                f"{self.name} failed to scrape {field.value} for {candidate_id}: {e}",
                source=self.name,
                field=field,
                item_id=session.item_id,
                original_error=e,
            ) from e

    async def _follow(
        self,
        field: FieldId,
        rule: ExtractionRule,
        candidate_id: str,
        listing: str,
        session: ScrapeSession,
    ) -> Any:
        """Extract a field from the detail pages a listing page links to."""
        refs = follow_references(rule, listing)
        if not refs:
            return FieldAbsent

        detail_rule = rule.follow.detail_rule(rule)
        pages = await asyncio.gather(
            *(
                session.get_document(
                    self.name,
                    f"{rule.page}:{ref}",
                    candidate_id,
                    rule.follow.url.format(id=candidate_id, ref=ref),
                )
                for ref in refs
            )
        )
        logger.debug(f"{self.name} followed {len(refs)} {rule.page} links for {field.value}")
        return merge_followed(field, [extract_field(field, detail_rule, page) for page in pages])
