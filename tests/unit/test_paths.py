"""
Unit tests for season path resolution.
"""

from pathlib import Path

import pytest

from reelindex.media.models import Episode, Season, Series
from reelindex.media.paths import (
    SeasonPathResolver,
    is_bluray,
    is_dvd,
    is_season_folder,
    resolve_season_path,
    season_directory,
    synthesized_season_path,
)


def exists_only(*paths):
    """Existence check that knows about the given paths and records calls."""
    known = set(paths)
    calls = []

    def exists(path):
        calls.append(path)
        return path in known

    exists.calls = calls
    return exists


@pytest.mark.unit
class TestDiscDetection:
    """Tests for DVD and Blu-ray layout detection."""

    def test_dvd(self):
        assert is_dvd("X\\Show\\Disc1\\VIDEO_TS\\VTS_01_1.VOB")
        assert is_dvd("/x/show/disc1/video_ts/vts_01_1.vob")
        assert not is_dvd("/x/show/Season 1/e01.mkv")

    def test_bluray(self):
        assert is_bluray("/x/show/Disc/BDMV/STREAM/00001.m2ts")
        assert is_bluray("/x/show/Disc/BDMV/index.bdmv")
        assert not is_bluray("/x/show/STREAM/00001.m2ts")

    @pytest.mark.parametrize("name", ["S01", "s1", "Season 1", "season_02", "Series 3", "Specials"])
    def test_season_folder_names(self, name):
        assert is_season_folder(name)

    @pytest.mark.parametrize("name", ["Disc1", "Show", "Season of the Witch", "VIDEO_TS"])
    def test_not_season_folder_names(self, name):
        assert not is_season_folder(name)


@pytest.mark.unit
class TestSeasonDirectory:
    """Tests for trimming an episode file to its season directory."""

    def test_plain_file(self):
        assert season_directory("/tv/Show/Season 1/Show.S01E01.mkv") == "/tv/Show/Season 1"

    def test_windows_plain_file(self):
        assert season_directory("C:\\TV\\Show\\Season 1\\e01.avi") == "C:\\TV\\Show\\Season 1"

    def test_dvd_trims_disc_folder(self):
        path = "D:\\TV\\Show\\Season 1\\Disc1\\VIDEO_TS\\VTS_01_1.VOB"

        assert season_directory(path) == "D:\\TV\\Show\\Season 1"

    def test_dvd_directly_in_season_folder(self):
        assert season_directory("X\\S01\\VIDEO_TS\\VTS_01_1.VOB") == "X\\S01"

    def test_bluray_trims_four_segments(self):
        path = "/tv/Show/Season 2/Disc A/BDMV/STREAM/00001.m2ts"

        assert season_directory(path) == "/tv/Show/Season 2"

    def test_bluray_directly_in_season_folder(self):
        assert season_directory("/tv/Show/Season 2/BDMV/STREAM/00001.m2ts") == "/tv/Show/Season 2"


@pytest.mark.unit
class TestResolveSeasonPath:
    """Tests for the first-existing-wins policy."""

    def test_synthesized_when_nothing_exists(self):
        resolver = SeasonPathResolver(exists=exists_only())

        result = resolver.resolve_season_path(["C:\\TV\\Show\\S02\\e1.avi"], "C:\\TV\\Show", 2)

        assert result == "C:\\TV\\Show\\Season 2"

    def test_synthesized_without_episodes(self):
        resolver = SeasonPathResolver(exists=exists_only())

        assert resolver.resolve_season_path([], "C:\\TV\\Show", 2) == "C:\\TV\\Show\\Season 2"
        assert resolver.resolve_season_path([], "/tv/Show/", 3) == "/tv/Show/Season 3"

    def test_synthesized_without_series_root(self):
        assert synthesized_season_path("", 4) == "Season 4"

    def test_first_existing_wins_and_stops(self):
        exists = exists_only("/tv/Show/B/e2.mkv", "/tv/Show/C/e3.mkv")
        resolver = SeasonPathResolver(exists=exists)
        paths = ["/tv/Show/A/e1.mkv", "/tv/Show/B/e2.mkv", "/tv/Show/C/e3.mkv"]

        assert resolver.resolve_season_path(paths, "/tv/Show", 1) == "/tv/Show/B"
        assert exists.calls == ["/tv/Show/A/e1.mkv", "/tv/Show/B/e2.mkv"]

    def test_dvd_episode(self):
        path = "X\\S01\\VIDEO_TS\\VTS_01_1.VOB"
        resolver = SeasonPathResolver(exists=exists_only(path))

        assert resolver.resolve_season_path([path], "X", 1) == "X\\S01"

    def test_real_files(self, temp_dir: Path):
        season_dir = temp_dir / "Show" / "Season 1"
        season_dir.mkdir(parents=True)
        (season_dir / "e02.mkv").write_bytes(b"\x00")
        paths = [str(season_dir / "e01.mkv"), str(season_dir / "e02.mkv")]

        assert resolve_season_path(paths, str(temp_dir / "Show"), 1) == str(season_dir)


@pytest.mark.unit
class TestSeasonPredicates:
    """Tests for missing-episode predicates."""

    @pytest.fixture
    def season(self) -> Season:
        return Season(1, [
            Episode(1, 1, "/tv/Show/Season 1/e1.mkv"),
            Episode(1, 2, "/tv/Show/Season 1/e2.mkv"),
            Episode(1, 3),
        ])

    def test_missing_episodes(self, season: Season):
        resolver = SeasonPathResolver(exists=exists_only("/tv/Show/Season 1/e1.mkv"))

        assert resolver.has_missing_episodes(season)
        assert resolver.count_missing_episodes(season) == 2
        assert resolver.missing_episode_numbers(season) == [2, 3]
        assert resolver.missing_episode_numbers(season, expected_count=5) == [2, 3, 4, 5]

    def test_all_present(self):
        season = Season(1, [Episode(1, 1, "/tv/a.mkv")])
        resolver = SeasonPathResolver(exists=exists_only("/tv/a.mkv"))

        assert not resolver.has_missing_episodes(season)
        assert resolver.count_missing_episodes(season) == 0

    def test_contains_episodes_with_files(self, season: Season):
        assert SeasonPathResolver(exists=exists_only("/tv/Show/Season 1/e2.mkv")).contains_episodes_with_files(season)
        assert not SeasonPathResolver(exists=exists_only()).contains_episodes_with_files(season)

    def test_season_name_and_first_path(self, season: Season):
        resolver = SeasonPathResolver(exists=exists_only("/tv/Show/Season 1/e2.mkv"))

        assert resolver.season_name(season) == "Season 1"
        assert resolver.first_existing_episode(season) == "/tv/Show/Season 1/e2.mkv"

    def test_season_path_uses_season_number(self, season: Season):
        resolver = SeasonPathResolver(exists=exists_only())

        assert resolver.season_path(season, "/tv/Show") == "/tv/Show/Season 1"

    def test_mixed_separator_episode(self):
        season = Season(1, [Episode(1, 1, "C:\\TV/Show\\S01\\e01.mkv")])
        resolver = SeasonPathResolver(exists=exists_only("C:\\TV\\Show\\S01\\e01.mkv"))

        assert resolver.season_path(season, "C:\\TV\\Show") == "C:\\TV\\Show\\S01"

    def test_series_path_from_episodes(self):
        show = Series(title="Show")
        show.add_season(Season(1, [Episode(1, 1, "/tv/Show/Season 1/e1.mkv")]))
        resolver = SeasonPathResolver(exists=exists_only("/tv/Show/Season 1/e1.mkv"))

        assert resolver.series_path(show) == "/tv/Show"

    def test_exists_errors_count_as_missing(self):
        def broken(path):
            raise PermissionError(path)

        resolver = SeasonPathResolver(exists=broken)

        assert resolver.first_existing(["/tv/a.mkv"]) is None
