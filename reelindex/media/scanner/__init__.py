"""Watched-folder scanning."""

from reelindex.media.scanner.base import MediaScanner, ScanProgress, ScanResult, ScanStatus
from reelindex.media.scanner.file_scanner import (
    FileScanner,
    FileScanResult,
    MediaNameParser,
    ParsedMediaName,
    ScannedFile,
    build_index,
    scan_watched_paths,
)

__all__ = [
    "FileScanResult",
    "FileScanner",
    "MediaNameParser",
    "MediaScanner",
    "ParsedMediaName",
    "ScanProgress",
    "ScanResult",
    "ScanStatus",
    "ScannedFile",
    "build_index",
    "scan_watched_paths",
]
