"""
ReelIndex - movie and TV library indexing and metadata aggregation

- Pluggable scrape sources (TMDB, pattern-driven HTML providers)
- Per-field priority fallback across sources
- Concurrent candidate search
- Season path resolution with DVD/Blu-ray folder layouts
- Atomically rebuilt media path index for unsorted-file scans
"""

__version__ = "1.0.0"
__license__ = "MIT"

from reelindex.config import get_config, load_config

__all__ = [
    "__version__",
    "get_config",
    "load_config",
]
