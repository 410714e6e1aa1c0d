"""
ReelIndex media module.

Library records, season path resolution and the path index.
"""

from reelindex.media.models import (
    Episode,
    FieldId,
    FieldValue,
    ImageInfo,
    MediaRecord,
    Movie,
    PersonInfo,
    Season,
    Series,
    normalize_path,
)
from reelindex.media.library import MediaLibrary
from reelindex.media.paths import SeasonPathResolver, resolve_season_path
from reelindex.media.index import IndexRebuildFailed, IndexSnapshot, MediaIndex, PathIndex

__all__ = [
    "Episode",
    "FieldId",
    "FieldValue",
    "ImageInfo",
    "IndexRebuildFailed",
    "IndexSnapshot",
    "MediaIndex",
    "MediaLibrary",
    "MediaRecord",
    "Movie",
    "PathIndex",
    "PersonInfo",
    "Season",
    "SeasonPathResolver",
    "Series",
    "normalize_path",
    "resolve_season_path",
]
