"""
Watched-folder scanner.

Walks a directory for media files the library does not know about yet
and guesses what each one is from its name.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from reelindex.config import ReelIndexConfig, get_config
from reelindex.media.index import MediaIndex
from reelindex.media.library import MediaLibrary
from reelindex.media.paths import is_season_folder
from reelindex.media.scanner.base import MediaScanner, ScanProgress, ScanResult, ScanStatus

logger = logging.getLogger(__name__)


@dataclass
class ParsedMediaName:
    """Parsed media file name."""

    title: str
    year: Optional[int] = None
    show_title: Optional[str] = None
    season_number: Optional[int] = None
    episode_numbers: List[int] = field(default_factory=list)
    quality: Optional[str] = None

    @property
    def is_episode(self) -> bool:
        return self.season_number is not None and bool(self.episode_numbers)

    @property
    def episode_number(self) -> Optional[int]:
        return self.episode_numbers[0] if self.episode_numbers else None


class MediaNameParser:
    """
    Parses media file names.

    Supports common naming conventions:
    - Movies: "Movie Title (2023).mkv", "Movie.Title.2023.1080p.mkv"
    - Shows: "Show Name - S01E05 - Episode Title.mkv", "Show.Name.1x05.mkv",
      multi-episode "Show.S01E01E02.mkv"
    """

    # "Show Name - Season 1 Episode 5"
    SEASON_EPISODE_PATTERN = re.compile(
        r"^(.+?)[\s\-\.]+season\s*(\d{1,2})[\s\-\.]+episode\s*(\d{1,3})(?:[\s\-\.]+(.+))?$",
        re.IGNORECASE,
    )

    # s01e02, s01e02e03, 01 e02, 1x02, 1x02x03
    TV_PATTERN = re.compile(
        r"(?<![0-9])s?([0-9]{1,2})((?:(?:e|\se)[0-9]+)+|(?:x[0-9]+)+)",
        re.IGNORECASE,
    )

    MOVIE_PATTERNS = [
        # "Movie Title (2023)"
        re.compile(r"^(.+?)\s*\((\d{4})\)"),
        # "Movie.Title.2023.1080p"
        re.compile(r"^(.+?)\.(\d{4})(?:\.|$)"),
    ]

    QUALITY_PATTERNS = [
        (re.compile(r"2160p|\b4k\b", re.IGNORECASE), "4K"),
        (re.compile(r"1080p|\bfhd\b", re.IGNORECASE), "1080p"),
        (re.compile(r"720p", re.IGNORECASE), "720p"),
        (re.compile(r"480p|\bsd\b", re.IGNORECASE), "480p"),
    ]

    def parse(self, filename: str) -> ParsedMediaName:
        """
        Parse a media file name.

        Args:
            filename: File name (with or without extension).

        Returns:
            ParsedMediaName; is_episode tells movies and episodes apart.
        """
        name = self._clean_name(Path(filename).stem)
        quality = self._extract_quality(Path(filename).stem)

        match = self.SEASON_EPISODE_PATTERN.match(name)
        if match:
            episode = int(match.group(3))
            return ParsedMediaName(
                title=self._format_title(match.group(4) or "") or f"Episode {episode}",
                show_title=self._format_title(match.group(1)),
                season_number=int(match.group(2)),
                episode_numbers=[episode],
                quality=quality,
            )

        match = self.TV_PATTERN.search(name)
        if match:
            episodes = [int(n) for n in re.findall(r"[0-9]+", match.group(2))]
            show = self._format_title(name[: match.start()])
            title = self._format_title(name[match.end():])
            return ParsedMediaName(
                title=title or f"Episode {episodes[0]}",
                show_title=show or None,
                season_number=int(match.group(1)),
                episode_numbers=episodes,
                quality=quality,
            )

        for pattern in self.MOVIE_PATTERNS:
            match = pattern.match(name)
            if match:
                return ParsedMediaName(
                    title=self._format_title(match.group(1)),
                    year=int(match.group(2)),
                    quality=quality,
                )

        return ParsedMediaName(title=self._format_title(name), quality=quality)

    def _clean_name(self, name: str) -> str:
        """Remove release tags and codec noise."""
        name = re.sub(r"\[.*?\]", "", name)
        name = re.sub(
            r"[\.\s]+(1080p|720p|2160p|480p|x264|x265|HEVC|AAC|DTS|BluRay|BDRip|WEBRip|HDTV|WEB-DL)\b.*$",
            "",
            name,
            flags=re.IGNORECASE,
        )
        return name.strip()

    def _format_title(self, title: str) -> str:
        title = title.replace(".", " ").replace("_", " ")
        title = " ".join(title.split())
        return title.strip(" -")

    def _extract_quality(self, name: str) -> Optional[str]:
        for pattern, quality in self.QUALITY_PATTERNS:
            if pattern.search(name):
                return quality
        return None


@dataclass
class ScannedFile:
    """A media file found on disk that the library does not own."""

    path: Path
    relative_path: Path
    size: int
    modified_time: datetime
    parsed: ParsedMediaName

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def extension(self) -> str:
        return self.path.suffix.lower()

    @property
    def is_episode(self) -> bool:
        return self.parsed.is_episode


@dataclass
class FileScanResult(ScanResult):
    """Scan result split into movie and episode candidates."""

    known_files: int = 0

    @property
    def movies(self) -> List[ScannedFile]:
        return [item for item in self.items if not item.is_episode]

    @property
    def episodes(self) -> List[ScannedFile]:
        return [item for item in self.items if item.is_episode]


class FileScanner(MediaScanner):
    """
    Finds unsorted media files in a watched directory.

    Files whose path is already in the movie or TV index are skipped;
    everything else is parsed into a movie or episode candidate.
    """

    def __init__(
        self,
        root_path: str,
        index: Optional[MediaIndex] = None,
        extensions: Optional[Iterable[str]] = None,
        parser: Optional[MediaNameParser] = None,
    ):
        super().__init__(root_path, extensions)
        self.index = index
        self.parser = parser or MediaNameParser()

    async def scan(self) -> FileScanResult:
        return await self.scan_path(self.root_path)

    async def scan_path(self, path: Path) -> FileScanResult:
        """Scan a directory below (or at) the root path."""
        self._cancelled = False

        progress = ScanProgress(started_at=datetime.now())
        result = FileScanResult(status=ScanStatus.RUNNING, progress=progress)

        try:
            all_files = self._discover_files(Path(path))
            progress.total_files = len(all_files)
            self._notify_progress(progress)

            if not all_files:
                result.warnings.append(f"No media files found in {path}")

            for file_path in all_files:
                if self._cancelled:
                    result.status = ScanStatus.CANCELLED
                    break

                progress.current_file = str(file_path)
                if self.index is not None and self.index.contains(str(file_path)):
                    progress.skipped_items += 1
                    result.known_files += 1
                else:
                    try:
                        result.items.append(self._scan_file(file_path))
                        progress.new_items += 1
                    except OSError as e:
                        logger.warning(f"Error scanning {file_path}: {e}")
                        progress.errors += 1
                        result.errors.append(str(e))

                progress.scanned_files += 1
                self._notify_progress(progress)

            progress.finished_at = datetime.now()
            if result.status != ScanStatus.CANCELLED:
                result.status = ScanStatus.COMPLETED

            logger.info(
                f"Scan of {path} complete: {len(result.items)} unsorted, "
                f"{result.known_files} known, {progress.errors} errors in {progress.elapsed_time}"
            )

        except Exception as e:
            logger.exception(f"Scan failed: {e}")
            progress.finished_at = datetime.now()
            return FileScanResult.failure(str(e), progress)

        return result

    def _discover_files(self, path: Path) -> List[Path]:
        """All media files below path, hidden entries skipped."""
        files = []
        for root, dirs, filenames in os.walk(path):
            dirs[:] = [d for d in dirs if not d.startswith(".")]

            for filename in filenames:
                if filename.startswith("."):
                    continue
                file_path = Path(root) / filename
                if self.is_media_file(file_path):
                    files.append(file_path)

        return sorted(files)

    def _scan_file(self, path: Path) -> ScannedFile:
        stat = path.stat()
        parsed = self.parser.parse(path.name)

        if parsed.is_episode and not parsed.show_title:
            parsed.show_title = self._show_from_folders(path)

        return ScannedFile(
            path=path,
            relative_path=self.get_relative_path(path),
            size=stat.st_size,
            modified_time=datetime.fromtimestamp(stat.st_mtime),
            parsed=parsed,
        )

    def _show_from_folders(self, path: Path) -> Optional[str]:
        """Nearest parent folder that is not a season folder."""
        for parent in path.parents:
            if parent == self.root_path or not parent.name:
                break
            if not is_season_folder(parent.name):
                return self.parser._format_title(parent.name)
        return None


def build_index(library: MediaLibrary, config: Optional[ReelIndexConfig] = None) -> MediaIndex:
    """Index the library now and, if configured, after every library change."""
    config = config or get_config()
    index = MediaIndex(library)
    index.rebuild_sync()
    if config.index.rebuild_on_change:
        index.watch_library()
    return index


async def scan_watched_paths(
    index: Optional[MediaIndex] = None,
    config: Optional[ReelIndexConfig] = None,
) -> List[FileScanResult]:
    """Scan every configured watched path."""
    config = config or get_config()
    results = []
    for watched in config.index.watched_paths:
        scanner = FileScanner(watched, index=index, extensions=config.index.extensions)
        results.append(await scanner.scan())
    return results
