"""
TMDB (The Movie Database) scrape source.

Fetches movie and TV metadata from TMDB API v3. Candidate ids carry the
media kind ("movie/603", "tv/1399"); one detail document per candidate
serves every field through the session cache.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, FrozenSet, List, Optional
from urllib.parse import urlencode

from reelindex.media.models import FieldId, ImageInfo, PersonInfo, is_empty_value
from reelindex.scrapers.base import (
    FetchFailed,
    FieldAbsent,
    MediaKind,
    ScrapeFailed,
    ScrapeQuery,
    ScrapeSource,
    SearchFailed,
    SearchMethod,
)
from reelindex.scrapers.session import Fetcher, ScrapeSession

logger = logging.getLogger(__name__)


class TMDBSource(ScrapeSource):
    """
    The Movie Database (TMDB) scrape source.

    Requires a TMDB API key (v3).
    Get one at: https://www.themoviedb.org/settings/api
    """

    BASE_URL = "https://api.themoviedb.org/3"
    IMAGE_BASE_URL = "https://image.tmdb.org/t/p"

    FIELDS = frozenset(FieldId)

    def __init__(
        self,
        api_key: str,
        fetcher: Fetcher,
        language: str = "en-US",
        include_adult: bool = False,
        max_results: int = 10,
    ):
        """
        Initialize TMDB source.

        Args:
            api_key: TMDB API key (v3).
            fetcher: Document fetcher for search requests.
            language: Language for metadata (e.g., "en-US").
            include_adult: Include adult content in searches.
            max_results: Cap on candidate ids per search.
        """
        self.api_key = api_key
        self.fetcher = fetcher
        self.language = language
        self.include_adult = include_adult
        self.max_results = max_results

    @property
    def name(self) -> str:
        return "tmdb"

    @property
    def available_search_methods(self) -> FrozenSet[SearchMethod]:
        return frozenset({SearchMethod.NATIVE})

    @property
    def available_fields(self) -> FrozenSet[FieldId]:
        return self.FIELDS

    def _url(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
        request_params: Dict[str, Any] = {
            "api_key": self.api_key,
            "language": self.language,
        }
        if params:
            request_params.update(params)
        return f"{self.BASE_URL}{endpoint}?{urlencode(request_params)}"

    async def search(self, query: ScrapeQuery, method: SearchMethod) -> List[str]:
        """Search TMDB for movies or TV shows."""
        self._check_search_method(query, method)

        params: Dict[str, Any] = {
            "query": query.title,
            "include_adult": str(self.include_adult).lower(),
        }
        if query.media_kind == MediaKind.TV:
            kind = "tv"
            if query.year:
                params["first_air_date_year"] = query.year
        else:
            kind = "movie"
            if query.year:
                params["year"] = query.year

        try:
            document = await self.fetcher.fetch(self._url(f"/search/{kind}", params))
            data = json.loads(document)
            results = data.get("results") or []
            if not isinstance(results, list):
                raise ValueError(f"results is {type(results).__name__}, not a list")
        except (FetchFailed, ValueError, AttributeError) as e:
            raise SearchFailed(
                f"TMDB search for {query.text!r} failed: {e}",
                source=self.name,
                query=query,
                method=method,
                original_error=e,
            ) from e

        return [
            f"{kind}/{item['id']}"
            for item in results[: self.max_results]
            if isinstance(item, dict) and item.get("id")
        ]

    async def _detail(self, candidate_id: str, session: ScrapeSession) -> Dict[str, Any]:
        url = self._url(f"/{candidate_id}", {"append_to_response": "credits"})
        document = await session.get_document(self.name, "detail", candidate_id, url)
        data = json.loads(document)
        if not isinstance(data, dict):
            raise ValueError("TMDB detail response is not an object")
        return data

    async def scrape_field(
        self,
        field: FieldId,
        candidate_id: str,
        session: ScrapeSession,
    ) -> Any:
        try:
            data = await self._detail(candidate_id, session)
            value = self._field_value(field, data)
        except (FetchFailed, ValueError, KeyError, TypeError, AttributeError) as e:
            raise ScrapeFailed(
                f"TMDB failed to scrape {field.value} for {candidate_id}: {e}",
                source=self.name,
                field=field,
                item_id=session.item_id,
                original_error=e,
            ) from e

        return FieldAbsent if is_empty_value(value) else value

    def _field_value(self, field: FieldId, data: Dict[str, Any]) -> Any:
        credits = data.get("credits") or {}
        released = self._parse_date(data.get("release_date") or data.get("first_air_date"))

        if field == FieldId.TITLE:
            return data.get("title") or data.get("name")
        if field == FieldId.ORIGINAL_TITLE:
            return data.get("original_title") or data.get("original_name")
        if field == FieldId.YEAR:
            return released.year if released else None
        if field == FieldId.RATING:
            if not data.get("vote_count"):
                return None
            return data.get("vote_average")
        if field == FieldId.DIRECTOR:
            directors = [c.get("name", "") for c in credits.get("crew", []) if c.get("job") == "Director"]
            return directors or [c.get("name", "") for c in data.get("created_by", [])]
        if field == FieldId.PLOT:
            return data.get("overview")
        if field == FieldId.TAGLINE:
            return data.get("tagline")
        if field == FieldId.COUNTRY:
            countries = [c.get("name", "") for c in data.get("production_countries", [])]
            return countries or list(data.get("origin_country", []))
        if field == FieldId.GENRE:
            return [g.get("name", "") for g in data.get("genres", []) if g.get("name")]
        if field == FieldId.STUDIO:
            studios = [c.get("name", "") for c in data.get("production_companies", [])]
            return studios + [n.get("name", "") for n in data.get("networks", [])]
        if field == FieldId.CAST:
            return self._parse_cast(credits.get("cast", []))
        if field == FieldId.RELEASE_DATE:
            return released
        if field == FieldId.RUNTIME:
            runtimes = data.get("episode_run_time") or []
            return data.get("runtime") or (sum(runtimes) // len(runtimes) if runtimes else None)
        if field == FieldId.POSTER:
            return self._images(data.get("poster_path"), "w500")
        if field == FieldId.FANART:
            return self._images(data.get("backdrop_path"), "w1280")
        return None

    def _parse_cast(self, cast: List[Dict[str, Any]]) -> List[PersonInfo]:
        """Parse cast list."""
        return [
            PersonInfo(
                name=p.get("name", ""),
                role=p.get("character", ""),
                image_url=self._get_image_url(p.get("profile_path"), "w185"),
            )
            for p in cast[:20]  # Limit to 20
            if p.get("name")
        ]

    def _images(self, path: Optional[str], size: str) -> List[ImageInfo]:
        url = self._get_image_url(path, size)
        return [ImageInfo(url=url)] if url else []

    def _get_image_url(self, path: Optional[str], size: str) -> Optional[str]:
        """Build full image URL."""
        if not path:
            return None
        return f"{self.IMAGE_BASE_URL}/{size}{path}"

    def _parse_date(self, date_str: Optional[str]) -> Optional[date]:
        """Parse date string to date object."""
        if not date_str:
            return None
        try:
            parts = date_str.split("-")
            return date(int(parts[0]), int(parts[1]), int(parts[2]))
        except (ValueError, IndexError):
            return None
