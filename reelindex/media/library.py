"""
In-memory media library.

Owns every movie and series record. Indexes and orchestrators only hold
paths or ids, never the records themselves.
"""

import logging
import threading
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from reelindex.media.models import MediaRecord, Movie, Series

logger = logging.getLogger(__name__)

ChangeListener = Callable[["MediaLibrary"], None]


class MediaLibrary:
    """
    Owner of all library records.

    Listeners are notified after each mutation (or once at the end of a
    bulk update) so dependent indexes can rebuild. The record maps are
    swapped, never mutated in place, so path enumeration on a worker
    thread always walks a consistent set.
    """

    def __init__(self):
        self._movies: Mapping[str, Movie] = MappingProxyType({})
        self._series: Mapping[str, Series] = MappingProxyType({})
        self._lock = threading.Lock()
        self._listeners: List[ChangeListener] = []
        self._bulk_depth = 0
        self._dirty = False

    # -- listeners --------------------------------------------------------

    def add_change_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self) -> None:
        if self._bulk_depth:
            self._dirty = True
            return
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.warning(f"Library change listener error: {e}")

    def bulk_update(self) -> "_BulkUpdate":
        """
        Group several mutations into one change notification.

        Usage:
            with library.bulk_update():
                library.add_movie(...)
                library.add_series(...)
        """
        return _BulkUpdate(self)

    # -- movies -----------------------------------------------------------

    @property
    def movies(self) -> List[Movie]:
        return list(self._movies.values())

    def add_movie(self, movie: Movie) -> Movie:
        with self._lock:
            self._movies = _with(self._movies, movie.id, movie)
        logger.debug(f"Added movie: {movie.title} ({movie.id})")
        self._changed()
        return movie

    def remove_movie(self, movie_id: str) -> Optional[Movie]:
        with self._lock:
            movie = self._movies.get(movie_id)
            if movie is not None:
                self._movies = _without(self._movies, movie_id)
        if movie is not None:
            self._changed()
        return movie

    # -- series -----------------------------------------------------------

    @property
    def series(self) -> List[Series]:
        return list(self._series.values())

    def add_series(self, series: Series) -> Series:
        with self._lock:
            self._series = _with(self._series, series.id, series)
        logger.debug(f"Added series: {series.title} ({series.id})")
        self._changed()
        return series

    def remove_series(self, series_id: str) -> Optional[Series]:
        with self._lock:
            series = self._series.get(series_id)
            if series is not None:
                self._series = _without(self._series, series_id)
        if series is not None:
            self._changed()
        return series

    def get(self, record_id: str) -> Optional[Union[Movie, Series]]:
        return self._movies.get(record_id) or self._series.get(record_id)

    def find_record(self, record_id: str) -> Optional[MediaRecord]:
        """Find any record, including seasons and episodes, by id."""
        record = self.get(record_id)
        if record is not None:
            return record
        for series in self._series.values():
            for season in series.seasons:
                if season.id == record_id:
                    return season
                for episode in season.episodes:
                    if episode.id == record_id:
                        return episode
        return None

    # -- path enumeration -------------------------------------------------

    def movie_file_paths(self) -> Iterator[str]:
        """Every media file path across all movies."""
        for movie in list(self._movies.values()):
            yield from movie.file_paths

    def tv_file_paths(self) -> Iterator[str]:
        """Every episode file path across all shows and seasons."""
        for series in list(self._series.values()):
            for episode in series.iter_episodes():
                if episode.file_path:
                    yield episode.file_path

    def __len__(self) -> int:
        return len(self._movies) + len(self._series)


def _with(records: Mapping[str, Any], key: str, record: Any) -> Mapping[str, Any]:
    updated: Dict[str, Any] = dict(records)
    updated[key] = record
    return MappingProxyType(updated)


def _without(records: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    updated: Dict[str, Any] = dict(records)
    del updated[key]
    return MappingProxyType(updated)


class _BulkUpdate:
    def __init__(self, library: MediaLibrary):
        self._library = library

    def __enter__(self) -> MediaLibrary:
        self._library._bulk_depth += 1
        return self._library

    def __exit__(self, exc_type, exc, tb) -> None:
        self._library._bulk_depth -= 1
        if self._library._bulk_depth == 0 and self._library._dirty:
            self._library._dirty = False
            self._library._changed()
