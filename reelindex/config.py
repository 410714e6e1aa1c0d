"""
Configuration management for ReelIndex.

Handles loading, validation, and access to application configuration.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

from reelindex.media.models import FieldId
from reelindex.scrapers.extractor import ExtractionRule

# Global configuration instance
_config: Optional["ReelIndexConfig"] = None


class HttpConfig(BaseModel):
    """Network fetch settings shared by every provider."""
    timeout: float = 20.0
    connect_timeout: float = 10.0
    retries: int = 2
    backoff_base: float = 0.5
    backoff_max: float = 8.0
    user_agent: str = "Mozilla/5.0 (compatible; ReelIndex/1.0)"
    proxy: Optional[str] = None
    follow_redirects: bool = True


class ScrapingConfig(BaseModel):
    """Scrape orchestration settings."""
    source_priority: list[str] = Field(default_factory=lambda: ["tmdb"])
    default_fields: list[FieldId] = Field(default_factory=list)  # empty = all available
    fallback_on_empty: bool = False
    search_timeout: float = 30.0
    max_concurrent_items: int = 4
    max_results: int = 10
    web_search_url: str = "https://www.bing.com/search?q={query}&count=20"


class TMDBConfig(BaseModel):
    """TMDB provider configuration."""
    enabled: bool = False
    api_key: str = ""
    language: str = "en-US"
    include_adult: bool = False


class SearchRule(BaseModel):
    """How a regex provider discovers candidate ids."""
    site: str = ""  # domain used for site-restricted web searches
    url: Optional[str] = None  # native search page, {query} placeholder
    id_pattern: str = ""  # must define an "id" group


class ProviderDefinition(BaseModel):
    """
    Declarative description of a regex-scraped provider.

    Patterns are data: adding a provider means adding one of these,
    never touching the orchestrators.
    """
    name: str
    enabled: bool = True
    urls: dict[str, str] = Field(default_factory=dict)  # page kind -> url with {id}
    search: SearchRule = Field(default_factory=SearchRule)
    fields: dict[FieldId, ExtractionRule] = Field(default_factory=dict)


class IndexConfig(BaseModel):
    """Media index and watched-folder scan settings."""
    extensions: list[str] = Field(default_factory=lambda: [
        ".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv", ".webm", ".m4v",
        ".mpg", ".mpeg", ".ts", ".m2ts", ".vob", ".iso", ".divx",
    ])
    rebuild_on_change: bool = True
    watched_paths: list[str] = Field(default_factory=list)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    file: str = "logs/reelindex.log"
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_to_console: bool = True
    log_to_file: bool = True


class ReelIndexConfig(BaseModel):
    """Main ReelIndex configuration."""
    http: HttpConfig = Field(default_factory=HttpConfig)
    scraping: ScrapingConfig = Field(default_factory=ScrapingConfig)
    tmdb: TMDBConfig = Field(default_factory=TMDBConfig)
    providers: dict[str, ProviderDefinition] = Field(default_factory=dict)
    index: IndexConfig = Field(default_factory=IndexConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_path: Optional[str] = None) -> ReelIndexConfig:
    """
    Load configuration from file.

    Args:
        config_path: Path to config file. Defaults to config.yaml in project root.

    Returns:
        Loaded and validated configuration.
    """
    global _config

    if config_path is None:
        possible_paths = [
            Path("config.yaml"),
            Path(__file__).parent.parent / "config.yaml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: dict[str, Any] = {}

    if config_path and Path(config_path).exists():
        with open(config_path, encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

    # Provider entries are keyed by name in YAML; the name field may be omitted
    for name, provider in (config_data.get("providers") or {}).items():
        if isinstance(provider, dict):
            provider.setdefault("name", name)

    env_overrides = _get_env_overrides()
    _deep_merge(config_data, env_overrides)

    _config = ReelIndexConfig(**config_data)
    return _config


def get_config() -> ReelIndexConfig:
    """
    Get the current configuration.

    Returns:
        Current configuration (loads default if not yet loaded).
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> ReelIndexConfig:
    """
    Reload configuration from disk.

    Returns:
        Freshly loaded configuration.
    """
    global _config
    _config = None
    return load_config()


def _get_env_overrides() -> dict[str, Any]:
    """Get configuration overrides from environment variables."""
    overrides: dict[str, Any] = {}

    env_map = {
        "REELINDEX_HTTP_TIMEOUT": ("http", "timeout"),
        "REELINDEX_HTTP_PROXY": ("http", "proxy"),
        "REELINDEX_HTTP_RETRIES": ("http", "retries"),
        "REELINDEX_SEARCH_TIMEOUT": ("scraping", "search_timeout"),
        "REELINDEX_MAX_CONCURRENT_ITEMS": ("scraping", "max_concurrent_items"),
        "REELINDEX_TMDB_ENABLED": ("tmdb", "enabled"),
        "REELINDEX_TMDB_API_KEY": ("tmdb", "api_key"),
        "REELINDEX_TMDB_LANGUAGE": ("tmdb", "language"),
        "REELINDEX_LOG_LEVEL": ("logging", "level"),
        "REELINDEX_LOG_FILE": ("logging", "file"),
    }

    # String settings keep the raw value, "12345" is a valid API key
    raw_strings = {("http", "proxy"), ("tmdb", "api_key"), ("tmdb", "language"),
                   ("logging", "level"), ("logging", "file")}

    for env_var, path in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            parsed = value if path in raw_strings else _parse_env_value(value)
            _set_nested(overrides, path, parsed)

    return overrides


def _parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _set_nested(d: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    """Set a nested dictionary value from a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge override into base dictionary."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


class _ConfigProxy:
    """
    Proxy object that provides lazy access to configuration.

    Allows modules to import `config` directly and access it like:
        from reelindex.config import config
        config.scraping.search_timeout

    The actual config is loaded on first attribute access.
    """

    def __getattr__(self, name: str) -> Any:
        return getattr(get_config(), name)

    def __repr__(self) -> str:
        return f"<ConfigProxy for {get_config()}>"


config = _ConfigProxy()
