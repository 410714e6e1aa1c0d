"""
Library record models.

Movies, series, seasons and episodes share one record base that owns
file paths, scraped field values and per-field change flags.
"""

import logging
import ntpath
import os
import re
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

USER_SOURCE = "user"


class FieldId(str, Enum):
    """Canonical metadata fields a provider can supply."""

    TITLE = "title"
    ORIGINAL_TITLE = "original_title"
    YEAR = "year"
    RATING = "rating"
    DIRECTOR = "director"
    PLOT = "plot"
    TAGLINE = "tagline"
    COUNTRY = "country"
    GENRE = "genre"
    STUDIO = "studio"
    CAST = "cast"
    RELEASE_DATE = "release_date"
    RUNTIME = "runtime"
    POSTER = "poster"
    FANART = "fanart"


LIST_FIELDS = frozenset({
    FieldId.DIRECTOR,
    FieldId.COUNTRY,
    FieldId.GENRE,
    FieldId.STUDIO,
    FieldId.CAST,
    FieldId.POSTER,
    FieldId.FANART,
})

IMAGE_FIELDS = frozenset({FieldId.POSTER, FieldId.FANART})


class MediaType(Enum):
    """Type of library record."""

    MOVIE = "movie"
    SERIES = "series"
    SEASON = "season"
    EPISODE = "episode"


@dataclass(frozen=True)
class PersonInfo:
    """Information about a person (actor, director, etc.)."""

    name: str
    role: str = ""  # Character name for actors
    image_url: Optional[str] = None


@dataclass(frozen=True)
class ImageInfo:
    """A remote image candidate (poster, fanart)."""

    url: str
    width: Optional[int] = None
    height: Optional[int] = None


def is_empty_value(value: Any) -> bool:
    """True for values that carry no information."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


@dataclass(frozen=True)
class FieldValue:
    """A field's value together with where it came from."""

    value: Any
    source: str
    overridden: bool = False
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def is_empty(self) -> bool:
        return is_empty_value(self.value)


WINDOWS_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:[\\/]")


def _is_windows_path(path: str) -> bool:
    return "\\" in path or bool(WINDOWS_DRIVE_PATTERN.match(path))


def normalize_path(path: Any) -> str:
    """
    Return the absolute, normalized form of a file path.

    Windows-style strings (any backslash, or a drive letter) are normalized
    with ntpath so they survive unchanged on POSIX hosts; mixed separators
    become backslashes.
    """
    raw = os.fspath(path)
    if not raw:
        return ""
    if _is_windows_path(raw):
        return ntpath.normpath(raw)
    return os.path.normpath(os.path.abspath(raw))


class MediaRecord:
    """
    Base class for every record owned by the library.

    Field values are published copy-on-write: each write builds a new
    mapping under the record lock and swaps it in, so readers on other
    threads always see a complete set of fields.
    """

    media_type = MediaType.MOVIE

    def __init__(self, title: str = "", file_paths: Optional[Iterable[Any]] = None):
        self._id = str(uuid.uuid4())
        self._lock = threading.RLock()
        self._fields: Mapping[FieldId, FieldValue] = MappingProxyType({})
        self._changed: frozenset = frozenset()
        self._file_paths: Tuple[str, ...] = ()

        if title:
            self.set_field(FieldId.TITLE, title, source="filename")
            self.clear_changed(FieldId.TITLE)
        for path in file_paths or ():
            self.add_file_path(path)

    @property
    def id(self) -> str:
        """Stable internal identifier."""
        return self._id

    @property
    def title(self) -> str:
        return self.get_value(FieldId.TITLE, "") or ""

    # -- file paths -------------------------------------------------------

    @property
    def file_paths(self) -> Tuple[str, ...]:
        return self._file_paths

    def add_file_path(self, path: Any) -> bool:
        """
        Associate a file with this record.

        Returns:
            False when the normalized path was already present.
        """
        normalized = normalize_path(path)
        if not normalized:
            return False
        with self._lock:
            if normalized in self._file_paths:
                return False
            self._file_paths = self._file_paths + (normalized,)
            return True

    def remove_file_path(self, path: Any) -> bool:
        normalized = normalize_path(path)
        with self._lock:
            if normalized not in self._file_paths:
                return False
            self._file_paths = tuple(p for p in self._file_paths if p != normalized)
            return True

    # -- fields -----------------------------------------------------------

    @property
    def fields(self) -> Mapping[FieldId, FieldValue]:
        """Read-only snapshot of the current field values."""
        return self._fields

    def get(self, field_id: FieldId) -> Optional[FieldValue]:
        return self._fields.get(field_id)

    def get_value(self, field_id: FieldId, default: Any = None) -> Any:
        current = self._fields.get(field_id)
        return default if current is None else current.value

    def is_overridden(self, field_id: FieldId) -> bool:
        current = self._fields.get(field_id)
        return current is not None and current.overridden

    def set_field(
        self,
        field_id: FieldId,
        value: Any,
        source: str,
        force: bool = False,
    ) -> bool:
        """
        Write a scraped value.

        A manual override is only replaced when force is set. The changed
        flag is raised only when the value actually differs.

        Returns:
            True if the field was written.
        """
        with self._lock:
            current = self._fields.get(field_id)
            if current is not None and current.overridden and not force:
                logger.debug(f"Keeping override for {field_id.value} on {self._id}")
                return False

            self._publish(field_id, FieldValue(value=value, source=source))
            if current is None or current.value != value:
                self._changed = self._changed | {field_id}
            return True

    def override_field(self, field_id: FieldId, value: Any) -> None:
        """Record a manual edit; later scrapes leave it alone."""
        with self._lock:
            current = self._fields.get(field_id)
            self._publish(
                field_id,
                FieldValue(value=value, source=USER_SOURCE, overridden=True),
            )
            if current is None or current.value != value:
                self._changed = self._changed | {field_id}

    def clear_override(self, field_id: FieldId) -> None:
        with self._lock:
            current = self._fields.get(field_id)
            if current is not None and current.overridden:
                self._publish(
                    field_id,
                    FieldValue(value=current.value, source=current.source),
                )

    def unset_field(self, field_id: FieldId) -> None:
        with self._lock:
            if field_id in self._fields:
                updated = dict(self._fields)
                del updated[field_id]
                self._fields = MappingProxyType(updated)
                self._changed = self._changed | {field_id}

    def _publish(self, field_id: FieldId, value: FieldValue) -> None:
        updated = dict(self._fields)
        updated[field_id] = value
        self._fields = MappingProxyType(updated)

    # -- change flags -----------------------------------------------------

    @property
    def changed_fields(self) -> frozenset:
        return self._changed

    def is_changed(self, field_id: FieldId) -> bool:
        return field_id in self._changed

    @property
    def has_changed_text(self) -> bool:
        return any(f not in IMAGE_FIELDS for f in self._changed)

    @property
    def has_changed_images(self) -> bool:
        return any(f in IMAGE_FIELDS for f in self._changed)

    def clear_changed(self, field_id: Optional[FieldId] = None) -> None:
        """Acknowledge a change once downstream writers have handled it."""
        with self._lock:
            if field_id is None:
                self._changed = frozenset()
            else:
                self._changed = self._changed - {field_id}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.title!r} id={self._id}>"


class Movie(MediaRecord):
    """A movie and its media files."""

    media_type = MediaType.MOVIE


class Episode(MediaRecord):
    """A single TV episode with at most one media file."""

    media_type = MediaType.EPISODE

    def __init__(
        self,
        season_number: int,
        episode_number: int,
        file_path: Any = "",
        title: str = "",
    ):
        super().__init__(title=title)
        self.season_number = season_number
        self.episode_number = episode_number
        if file_path:
            self.file_path = file_path

    @property
    def file_path(self) -> str:
        return self._file_paths[0] if self._file_paths else ""

    @file_path.setter
    def file_path(self, value: Any) -> None:
        normalized = normalize_path(value) if value else ""
        with self._lock:
            self._file_paths = (normalized,) if normalized else ()

    @property
    def code(self) -> str:
        return f"S{self.season_number:02d}E{self.episode_number:02d}"


class Season(MediaRecord):
    """
    A season and its episodes, keyed by episode number.

    Episode numbers are unique within a season. The episode mapping is
    replaced, never mutated, so index rebuilds on worker threads can walk
    it while the library changes.
    """

    media_type = MediaType.SEASON

    def __init__(self, season_number: int, episodes: Optional[Iterable[Episode]] = None):
        super().__init__()
        self.season_number = season_number
        self._episodes: Mapping[int, Episode] = MappingProxyType({})
        for episode in episodes or ():
            self.add_episode(episode)

    @property
    def episodes(self) -> List[Episode]:
        """Episodes ordered by episode number."""
        episodes = self._episodes
        return [episodes[n] for n in sorted(episodes)]

    @property
    def episode_numbers(self) -> List[int]:
        return sorted(self._episodes)

    def add_episode(self, episode: Episode) -> Episode:
        with self._lock:
            if episode.episode_number in self._episodes:
                raise ValueError(
                    f"Season {self.season_number} already has episode {episode.episode_number}"
                )
            updated = dict(self._episodes)
            updated[episode.episode_number] = episode
            self._episodes = MappingProxyType(updated)
        return episode

    def get_episode(self, episode_number: int) -> Optional[Episode]:
        return self._episodes.get(episode_number)

    def remove_episode(self, episode_number: int) -> Optional[Episode]:
        with self._lock:
            updated = dict(self._episodes)
            episode = updated.pop(episode_number, None)
            if episode is not None:
                self._episodes = MappingProxyType(updated)
        return episode

    def is_complete(
        self,
        expected_count: int,
        exists: Callable[[str], bool] = os.path.isfile,
    ) -> bool:
        """True iff every episode 1..expected_count maps to an existing file."""
        episodes = self._episodes
        for number in range(1, expected_count + 1):
            episode = episodes.get(number)
            if episode is None or not episode.file_path or not exists(episode.file_path):
                return False
        return True

    def contains_changed_episodes(self) -> bool:
        return any(episode.changed_fields for episode in self._episodes.values())

    def __len__(self) -> int:
        return len(self._episodes)


class Series(MediaRecord):
    """A TV series with its seasons keyed by season number."""

    media_type = MediaType.SERIES

    def __init__(self, title: str = "", root_path: Any = ""):
        super().__init__(title=title)
        self.root_path = normalize_path(root_path) if root_path else ""
        self._seasons: Mapping[int, Season] = MappingProxyType({})

    @property
    def seasons(self) -> List[Season]:
        seasons = self._seasons
        return [seasons[n] for n in sorted(seasons)]

    def add_season(self, season: Season) -> Season:
        with self._lock:
            if season.season_number in self._seasons:
                raise ValueError(f"Series already has season {season.season_number}")
            updated = dict(self._seasons)
            updated[season.season_number] = season
            self._seasons = MappingProxyType(updated)
        return season

    def remove_season(self, season_number: int) -> Optional[Season]:
        with self._lock:
            updated = dict(self._seasons)
            season = updated.pop(season_number, None)
            if season is not None:
                self._seasons = MappingProxyType(updated)
        return season

    def get_season(self, season_number: int) -> Optional[Season]:
        return self._seasons.get(season_number)

    def get_or_create_season(self, season_number: int) -> Season:
        with self._lock:
            season = self._seasons.get(season_number)
            if season is None:
                season = self.add_season(Season(season_number))
        return season

    def iter_episodes(self) -> Iterator[Episode]:
        for season in self.seasons:
            yield from season.episodes
