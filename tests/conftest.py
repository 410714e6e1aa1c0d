"""
ReelIndex Test Configuration

Shared fixtures and configuration for all tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

import reelindex.config as config_module
from reelindex.config import ProviderDefinition, ScrapingConfig
from reelindex.media.models import Episode, FieldId, Movie, Season, Series
from reelindex.scrapers.extractor import ExtractionRule
from tests.fixtures import FakeFetcher


# ============ Temporary File Fixtures ============


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="function")
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_file = temp_dir / "config.yaml"
    config_content = """
http:
  timeout: 5
  retries: 1

scraping:
  source_priority: ["cinema", "tmdb"]
  fallback_on_empty: true
  search_timeout: 2

tmdb:
  enabled: true
  api_key: "test-key"

providers:
  cinema:
    urls:
      main: "https://cinema.example/film/{id}.html"
    search:
      url: "https://cinema.example/search?q={query}"
      id_pattern: 'href="/film/(?P<id>\\d+)\\.html"'
    fields:
      title:
        pattern: '<h1>(?P<value>[^<]+)</h1>'
        group: value

logging:
  level: "DEBUG"
  log_to_file: false
"""
    config_file.write_text(config_content)
    return config_file


# ============ Scraping Fixtures ============


@pytest.fixture
def scraping_config() -> ScrapingConfig:
    """Scraping settings with short timeouts."""
    return ScrapingConfig(search_timeout=1.0, max_concurrent_items=2)


@pytest.fixture
def fetcher() -> FakeFetcher:
    """Fetcher with no documents; tests add what they need."""
    return FakeFetcher()


@pytest.fixture
def cinema_definition() -> ProviderDefinition:
    """Provider definition for a small HTML site."""
    return ProviderDefinition(
        name="cinema",
        urls={
            "main": "https://cinema.example/film/{id}.html",
            "cast": "https://cinema.example/film/{id}/cast.html",
        },
        search={
            "site": "cinema.example",
            "url": "https://cinema.example/search?q={query}",
            "id_pattern": r'href="/film/(?P<id>\d+)\.html"',
        },
        fields={
            FieldId.TITLE: ExtractionRule(pattern=r"<h1>(?P<value>[^<]+)</h1>", group="value"),
            FieldId.RATING: ExtractionRule(pattern=r"\((?P<value>\d+[.,]\d+)\)", group="value"),
            FieldId.GENRE: ExtractionRule(
                pattern=r'<span class="genre">(?P<value>[^<]+)</span>', group="value"
            ),
            FieldId.TAGLINE: ExtractionRule(
                pattern=r'<p class="tagline">(?P<value>[^<]+)</p>', group="value"
            ),
            FieldId.CAST: ExtractionRule(
                page="cast",
                pattern=r'<li><b>(?P<actor>[^<]+)</b> as (?P<role>[^<]+)</li>',
            ),
        },
    )


CINEMA_MAIN_PAGE = """
<html><body>
<h1>The Matrix</h1>
<p>Press (8.1) Spectators (7.5)</p>
<span class="genre">Action</span>
<span class="genre">Science Fiction</span>
<span class="genre">Action</span>
</body></html>
"""

CINEMA_CAST_PAGE = """
<ul>
<li><b>Keanu Reeves</b> as Neo</li>
<li><b>Carrie-Anne Moss</b> as Trinity</li>
</ul>
"""


@pytest.fixture
def cinema_fetcher() -> FakeFetcher:
    """Fetcher serving one film from the cinema site."""
    return FakeFetcher({
        "https://cinema.example/film/603.html": CINEMA_MAIN_PAGE,
        "https://cinema.example/film/603/cast.html": CINEMA_CAST_PAGE,
        "https://cinema.example/search?q=The+Matrix+1999": (
            '<a href="/film/603.html">The Matrix</a>'
            '<a href="/film/604.html">The Matrix Reloaded</a>'
            '<a href="/film/603.html">The Matrix</a>'
        ),
    })


# ============ Library Fixtures ============


@pytest.fixture
def movie() -> Movie:
    """Movie record with one file."""
    return Movie(title="The Matrix", file_paths=["/media/movies/The Matrix (1999)/matrix.mkv"])


@pytest.fixture
def series() -> Series:
    """Series with two seasons of episodes."""
    show = Series(title="Show", root_path="/media/tv/Show")
    season_one = show.add_season(Season(1))
    for number in (1, 2):
        season_one.add_episode(
            Episode(1, number, file_path=f"/media/tv/Show/Season 1/Show.S01E0{number}.mkv")
        )
    season_two = show.add_season(Season(2))
    season_two.add_episode(Episode(2, 1, file_path="/media/tv/Show/Season 2/Show.S02E01.mkv"))
    return show


# ============ Environment Fixtures ============


@pytest.fixture(autouse=True)
def clean_environment():
    """Clean environment variables and the cached config for each test."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("REELINDEX_"):
            del os.environ[key]
    config_module._config = None

    yield

    os.environ.clear()
    os.environ.update(original_env)
    config_module._config = None


@pytest.fixture
def mock_env_vars():
    """Set up mock environment variables."""
    env_vars = {
        "REELINDEX_SEARCH_TIMEOUT": "12",
        "REELINDEX_TMDB_API_KEY": "env-key",
        "REELINDEX_LOG_LEVEL": "DEBUG",
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


# ============ Markers ============


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow tests")
