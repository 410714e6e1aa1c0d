"""
Unit tests for configuration module.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from reelindex.config import (
    HttpConfig,
    IndexConfig,
    LoggingConfig,
    ReelIndexConfig,
    ScrapingConfig,
    config,
    get_config,
    load_config,
    reload_config,
)
from reelindex.media.models import FieldId


@pytest.mark.unit
class TestScrapingConfig:
    """Tests for ScrapingConfig."""

    def test_default_values(self):
        """Test default scraping configuration values."""
        scraping = ScrapingConfig()

        assert scraping.source_priority == ["tmdb"]
        assert scraping.default_fields == []
        assert scraping.fallback_on_empty is False
        assert scraping.search_timeout == 30.0
        assert "{query}" in scraping.web_search_url

    def test_default_fields_are_field_ids(self):
        """Test field names are validated into FieldId members."""
        scraping = ScrapingConfig(default_fields=["plot", "rating"])

        assert scraping.default_fields == [FieldId.PLOT, FieldId.RATING]

    def test_unknown_field_rejected(self):
        """Test an unknown field name fails validation."""
        with pytest.raises(ValueError):
            ScrapingConfig(default_fields=["soundtrack"])


@pytest.mark.unit
class TestSectionDefaults:
    """Tests for the remaining sections."""

    def test_http_defaults(self):
        http = HttpConfig()

        assert http.timeout > 0
        assert http.retries >= 0
        assert http.proxy is None
        assert "ReelIndex" in http.user_agent

    def test_index_extensions(self):
        index = IndexConfig()

        assert ".mkv" in index.extensions
        assert ".vob" in index.extensions
        assert index.rebuild_on_change is True

    def test_logging_defaults(self):
        logging_config = LoggingConfig()

        assert logging_config.level == "INFO"
        assert logging_config.backup_count == 5


@pytest.mark.unit
class TestLoadConfig:
    """Tests for loading configuration from YAML."""

    def test_load_from_file(self, temp_config_file: Path):
        """Test loading configuration from a YAML file."""
        loaded = load_config(str(temp_config_file))

        assert isinstance(loaded, ReelIndexConfig)
        assert loaded.http.timeout == 5
        assert loaded.scraping.source_priority == ["cinema", "tmdb"]
        assert loaded.scraping.fallback_on_empty is True
        assert loaded.tmdb.api_key == "test-key"
        assert loaded.logging.log_to_file is False

    def test_provider_name_taken_from_key(self, temp_config_file: Path):
        """Test provider entries get their name from the mapping key."""
        loaded = load_config(str(temp_config_file))

        cinema = loaded.providers["cinema"]
        assert cinema.name == "cinema"
        assert cinema.urls["main"] == "https://cinema.example/film/{id}.html"
        assert FieldId.TITLE in cinema.fields
        assert cinema.fields[FieldId.TITLE].group == "value"
        assert r"(?P<id>\d+)" in cinema.search.id_pattern

    def test_missing_file_uses_defaults(self, temp_dir: Path):
        """Test a missing config file falls back to defaults."""
        loaded = load_config(str(temp_dir / "nope.yaml"))

        assert loaded.scraping.source_priority == ["tmdb"]
        assert loaded.providers == {}

    def test_env_overrides(self, temp_config_file: Path, mock_env_vars):
        """Test REELINDEX_* environment variables override the file."""
        loaded = load_config(str(temp_config_file))

        assert loaded.scraping.search_timeout == 12
        assert loaded.tmdb.api_key == "env-key"
        assert loaded.logging.level == "DEBUG"

    def test_numeric_api_key_stays_string(self, temp_dir: Path):
        """Test string settings are not coerced to numbers."""
        with patch.dict(os.environ, {"REELINDEX_TMDB_API_KEY": "12345"}):
            loaded = load_config(str(temp_dir / "nope.yaml"))

        assert loaded.tmdb.api_key == "12345"

    def test_get_config_caches(self, temp_config_file: Path):
        """Test get_config returns the loaded instance."""
        loaded = load_config(str(temp_config_file))

        assert get_config() is loaded
        assert config.tmdb.api_key == "test-key"

    def test_reload_config(self, temp_config_file: Path):
        """Test reload_config builds a fresh instance."""
        first = load_config(str(temp_config_file))
        second = reload_config()

        assert second is not first
        assert get_config() is second
