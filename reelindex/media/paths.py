"""
Season path canonicalization.

Works on path strings so Windows-style library paths resolve the same on
every host. A season's directory is taken from the first episode file that
actually exists; DVD (VIDEO_TS) and Blu-ray (BDMV/STREAM) disc folders are
trimmed so the result is the season folder, not the disc structure.
"""

import logging
import os
import re
from typing import Callable, Iterable, List, Optional

from reelindex.media.models import Season, Series

logger = logging.getLogger(__name__)

DVD_FOLDER = "video_ts"
BLURAY_FOLDER = "bdmv"
BLURAY_STREAM_FOLDER = "stream"

SEASON_FOLDER_PATTERN = re.compile(
    r"^(?:s(?:eason)?[\s._-]*\d{1,3}|series[\s._-]*\d{1,3}|specials?)$",
    re.IGNORECASE,
)


def path_separator(path: str) -> str:
    """Separator used by a path string."""
    if "\\" in path:
        return "\\"
    if "/" in path:
        return "/"
    return os.sep


def split_path(path: str) -> List[str]:
    return path.split(path_separator(path))


def is_dvd(path: str) -> bool:
    """True if the file sits inside a VIDEO_TS folder."""
    segments = split_path(path)
    return len(segments) >= 2 and segments[-2].lower() == DVD_FOLDER


def is_bluray(path: str) -> bool:
    """True if the file sits inside BDMV/STREAM or directly inside BDMV."""
    segments = split_path(path)
    if len(segments) >= 3 and segments[-2].lower() == BLURAY_STREAM_FOLDER:
        return segments[-3].lower() == BLURAY_FOLDER
    return len(segments) >= 2 and segments[-2].lower() == BLURAY_FOLDER


def _disc_anchor(segments: List[str]) -> Optional[int]:
    """Index of the VIDEO_TS/BDMV segment, if the file is part of a disc."""
    if len(segments) >= 2 and segments[-2].lower() == DVD_FOLDER:
        return len(segments) - 2
    if (
        len(segments) >= 3
        and segments[-2].lower() == BLURAY_STREAM_FOLDER
        and segments[-3].lower() == BLURAY_FOLDER
    ):
        return len(segments) - 3
    if len(segments) >= 2 and segments[-2].lower() == BLURAY_FOLDER:
        return len(segments) - 2
    return None


def is_season_folder(name: str) -> bool:
    return bool(SEASON_FOLDER_PATTERN.match(name.strip()))


def season_directory(path: str) -> str:
    """
    Directory of the season an episode file belongs to.

    Plain files drop the file name. Disc files drop the disc structure
    (VIDEO_TS plus the disc folder is 3 segments, BDMV/STREAM plus the disc
    folder is 4). A disc stored directly in a season-named folder keeps
    that folder.
    """
    sep = path_separator(path)
    segments = path.split(sep)
    anchor = _disc_anchor(segments)

    if anchor is None:
        keep = len(segments) - 1
    elif anchor >= 1 and is_season_folder(segments[anchor - 1]):
        keep = anchor
    else:
        keep = anchor - 1

    return sep.join(segments[: max(keep, 0)])


def synthesized_season_path(series_path: str, season_number: int) -> str:
    """Fallback season directory: <series root><sep>Season <N>."""
    if not series_path:
        return f"Season {season_number}"
    sep = path_separator(series_path)
    root = series_path.rstrip(sep) or series_path
    return f"{root}{sep}Season {season_number}"


class SeasonPathResolver:
    """
    Resolves season directories and file-presence predicates.

    Args:
        exists: File existence check, injectable for tests and remote
            libraries.
    """

    def __init__(self, exists: Callable[[str], bool] = os.path.isfile):
        self.exists = exists

    def _file_exists(self, path: str) -> bool:
        if not path:
            return False
        try:
            return bool(self.exists(path))
        except OSError as e:
            logger.debug(f"Existence check failed for {path}: {e}")
            return False

    def first_existing(self, episode_paths: Iterable[str]) -> Optional[str]:
        """First path, in enumeration order, that exists on disk."""
        for path in episode_paths:
            if self._file_exists(path):
                return path
        return None

    def resolve_season_path(
        self,
        episode_paths: Iterable[str],
        series_path: str,
        season_number: int,
    ) -> str:
        """
        Canonical season directory for a set of episode files.

        The first existing episode wins; scanning stops there. With no
        existing episode the path is synthesized from the series root.
        """
        first = self.first_existing(episode_paths)
        if first is not None:
            return season_directory(first)
        return synthesized_season_path(series_path, season_number)

    def season_path(self, season: Season, series_path: str = "") -> str:
        return self.resolve_season_path(
            (episode.file_path for episode in season.episodes),
            series_path,
            season.season_number,
        )

    def series_path(self, series: Series) -> str:
        """Series root: explicit root, else the parent of the first located season."""
        if series.root_path:
            return series.root_path
        for season in series.seasons:
            first = self.first_existing(e.file_path for e in season.episodes)
            if first is not None:
                season_dir = season_directory(first)
                sep = path_separator(season_dir)
                return season_dir.rsplit(sep, 1)[0] if sep in season_dir else ""
        return ""

    def season_name(self, season: Season) -> str:
        """Folder name holding the first existing episode file."""
        first = self.first_existing(e.file_path for e in season.episodes)
        if first is None:
            return ""
        segments = split_path(first)
        return segments[-2] if len(segments) >= 2 else ""

    def first_existing_episode(self, season: Season) -> str:
        return self.first_existing(e.file_path for e in season.episodes) or ""

    def has_missing_episodes(self, season: Season) -> bool:
        """True iff an episode has no path or its path is not an existing file."""
        return any(not self._file_exists(e.file_path) for e in season.episodes)

    def count_missing_episodes(self, season: Season) -> int:
        return sum(1 for e in season.episodes if not self._file_exists(e.file_path))

    def contains_episodes_with_files(self, season: Season) -> bool:
        return any(self._file_exists(e.file_path) for e in season.episodes)

    def missing_episode_numbers(
        self,
        season: Season,
        expected_count: Optional[int] = None,
    ) -> List[int]:
        """
        Episode numbers without an existing file.

        With expected_count, numbers 1..N that have no episode record at
        all are reported too.
        """
        numbers = set(season.episode_numbers)
        if expected_count is not None:
            numbers |= set(range(1, expected_count + 1))
        missing = []
        for number in sorted(numbers):
            episode = season.get_episode(number)
            if episode is None or not self._file_exists(episode.file_path):
                missing.append(number)
        return missing


_default_resolver = SeasonPathResolver()


def resolve_season_path(
    episode_paths: Iterable[str],
    series_path: str,
    season_number: int,
) -> str:
    """Resolve a season directory against the local file system."""
    return _default_resolver.resolve_season_path(episode_paths, series_path, season_number)
