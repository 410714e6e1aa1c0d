"""
Unit tests for media scanner modules.
"""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from reelindex.config import IndexConfig, ReelIndexConfig
from reelindex.media.index import MediaIndex
from reelindex.media.library import MediaLibrary
from reelindex.media.models import Movie
from reelindex.media.scanner.base import ScanProgress, ScanResult, ScanStatus
from reelindex.media.scanner.file_scanner import (
    FileScanner,
    MediaNameParser,
    build_index,
    scan_watched_paths,
)


def touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x00" * 16)
    return path


@pytest.mark.unit
class TestScanProgress:
    """Tests for ScanProgress dataclass."""

    def test_default_values(self):
        progress = ScanProgress()

        assert progress.total_files == 0
        assert progress.scanned_files == 0
        assert progress.errors == 0
        assert not progress.is_finished

    def test_percent_complete(self):
        progress = ScanProgress(total_files=100, scanned_files=50)

        assert progress.percent_complete == 50.0

    def test_percent_complete_zero_division(self):
        assert ScanProgress().percent_complete == 0.0

    def test_elapsed_time(self):
        started = datetime(2024, 1, 1, 12, 0, 0)
        progress = ScanProgress(started_at=started, finished_at=started + timedelta(seconds=30))

        assert progress.elapsed_time == timedelta(seconds=30)
        assert progress.is_finished

    def test_failure_result(self):
        result = ScanResult.failure(error="Scan failed", progress=ScanProgress(errors=1))

        assert result.status == ScanStatus.FAILED
        assert "Scan failed" in result.errors


@pytest.mark.unit
class TestMediaNameParser:
    """Tests for file name parsing."""

    @pytest.fixture
    def parser(self) -> MediaNameParser:
        return MediaNameParser()

    def test_sxxexx(self, parser):
        parsed = parser.parse("Show Name - S01E05 - The Episode.mkv")

        assert parsed.is_episode
        assert parsed.show_title == "Show Name"
        assert parsed.season_number == 1
        assert parsed.episode_numbers == [5]
        assert parsed.title == "The Episode"

    def test_dotted_name(self, parser):
        parsed = parser.parse("Show.Name.s02e10.720p.HDTV.x264.mkv")

        assert parsed.show_title == "Show Name"
        assert parsed.season_number == 2
        assert parsed.episode_number == 10
        assert parsed.quality == "720p"

    def test_multi_episode(self, parser):
        parsed = parser.parse("Show.S01E01E02.mkv")

        assert parsed.episode_numbers == [1, 2]

    def test_x_format(self, parser):
        parsed = parser.parse("Show - 3x07.avi")

        assert parsed.season_number == 3
        assert parsed.episode_numbers == [7]

    def test_season_episode_words(self, parser):
        parsed = parser.parse("Show Name - Season 2 Episode 4.mkv")

        assert parsed.show_title == "Show Name"
        assert parsed.season_number == 2
        assert parsed.episode_numbers == [4]
        assert parsed.title == "Episode 4"

    def test_bare_episode_code(self, parser):
        parsed = parser.parse("s01e03.mkv")

        assert parsed.is_episode
        assert parsed.show_title is None

    def test_movie_with_parenthesized_year(self, parser):
        parsed = parser.parse("The Matrix (1999).mkv")

        assert not parsed.is_episode
        assert parsed.title == "The Matrix"
        assert parsed.year == 1999

    def test_dotted_movie(self, parser):
        parsed = parser.parse("The.Dark.Knight.2008.1080p.BluRay.x264.mkv")

        assert not parsed.is_episode
        assert parsed.title == "The Dark Knight"
        assert parsed.year == 2008
        assert parsed.quality == "1080p"

    def test_plain_name(self, parser):
        parsed = parser.parse("home_video.mp4")

        assert parsed.title == "home video"
        assert parsed.year is None
        assert not parsed.is_episode


@pytest.mark.unit
class TestFileScanner:
    """Tests for FileScanner."""

    @pytest.fixture
    def watched(self, temp_dir: Path) -> Path:
        touch(temp_dir / "Movies" / "The Matrix (1999).mkv")
        touch(temp_dir / "Movies" / "Heat (1995).avi")
        touch(temp_dir / "Show" / "Season 1" / "s01e01.mkv")
        touch(temp_dir / "Show" / "Season 1" / "s01e01.srt")
        touch(temp_dir / ".hidden" / "Secret (2000).mkv")
        touch(temp_dir / "Movies" / ".partial.mkv")
        return temp_dir

    @pytest.mark.asyncio
    async def test_scan_without_index(self, watched: Path):
        result = await FileScanner(str(watched)).scan()

        assert result.status == ScanStatus.COMPLETED
        assert sorted(f.filename for f in result.items) == [
            "Heat (1995).avi",
            "The Matrix (1999).mkv",
            "s01e01.mkv",
        ]
        assert [f.parsed.title for f in result.movies] == ["Heat", "The Matrix"]
        assert [f.parsed.show_title for f in result.episodes] == ["Show"]

    @pytest.mark.asyncio
    async def test_known_files_skipped(self, watched: Path):
        library = MediaLibrary()
        library.add_movie(Movie(title="The Matrix", file_paths=[watched / "Movies" / "The Matrix (1999).mkv"]))
        index = MediaIndex(library)
        index.rebuild_sync()

        result = await FileScanner(str(watched), index=index).scan()

        assert result.known_files == 1
        assert result.progress.skipped_items == 1
        assert "The Matrix (1999).mkv" not in [f.filename for f in result.items]
        assert len(result.items) == 2

    @pytest.mark.asyncio
    async def test_extensions_filter(self, watched: Path):
        result = await FileScanner(str(watched), extensions=["avi"]).scan()

        assert [f.filename for f in result.items] == ["Heat (1995).avi"]

    @pytest.mark.asyncio
    async def test_relative_path(self, watched: Path):
        result = await FileScanner(str(watched), extensions=[".avi"]).scan()

        assert result.items[0].relative_path == Path("Movies") / "Heat (1995).avi"

    @pytest.mark.asyncio
    async def test_progress_callbacks(self, watched: Path):
        scanner = FileScanner(str(watched))
        seen = []
        scanner.add_progress_callback(lambda p: seen.append((p.scanned_files, p.total_files)))

        await scanner.scan()

        assert seen[0] == (0, 3)
        assert seen[-1] == (3, 3)

    @pytest.mark.asyncio
    async def test_cancel(self, watched: Path):
        scanner = FileScanner(str(watched))
        scanner.add_progress_callback(lambda p: scanner.cancel() if p.scanned_files == 1 else None)

        result = await scanner.scan()

        assert result.status == ScanStatus.CANCELLED
        assert len(result.items) == 1

    @pytest.mark.asyncio
    async def test_empty_directory(self, temp_dir: Path):
        result = await FileScanner(str(temp_dir)).scan()

        assert result.status == ScanStatus.COMPLETED
        assert result.items == []
        assert result.warnings

    @pytest.mark.asyncio
    async def test_scan_watched_paths(self, watched: Path):
        config = ReelIndexConfig(index=IndexConfig(watched_paths=[str(watched / "Movies")]))

        results = await scan_watched_paths(config=config)

        assert len(results) == 1
        assert len(results[0].movies) == 2

    @pytest.mark.asyncio
    async def test_build_index_follows_library(self, watched: Path):
        library = MediaLibrary()
        index = build_index(library, ReelIndexConfig())
        heat = watched / "Movies" / "Heat (1995).avi"

        library.add_movie(Movie(title="Heat", file_paths=[heat]))
        await index.wait_idle()
        result = await FileScanner(str(watched), index=index).scan()

        assert result.known_files == 1
        assert "Heat (1995).avi" not in [f.filename for f in result.items]

    def test_build_index_without_watching(self, movie: Movie):
        library = MediaLibrary()
        config = ReelIndexConfig(index=IndexConfig(rebuild_on_change=False))
        index = build_index(library, config)

        library.add_movie(movie)

        assert not index.movie_contains(movie.file_paths[0])
