"""
Base scanner classes.

Progress and result types shared by the watched-folder scan and the
batch scraper.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = frozenset({
    ".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv", ".webm", ".m4v",
    ".mpg", ".mpeg", ".ts", ".m2ts", ".vob", ".iso", ".divx",
})


class ScanStatus(Enum):
    """Status of a scan or batch run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class ScanProgress:
    """
    Progress of a long-running library operation.

    "Files" are items for a batch scrape: one job per record.
    """

    total_files: int = 0
    scanned_files: int = 0
    new_items: int = 0
    updated_items: int = 0
    skipped_items: int = 0
    errors: int = 0
    current_file: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def percent_complete(self) -> float:
        if self.total_files == 0:
            return 0.0
        return (self.scanned_files / self.total_files) * 100

    @property
    def elapsed_time(self) -> Optional[timedelta]:
        if not self.started_at:
            return None
        end = self.finished_at or datetime.now()
        return end - self.started_at

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None


@dataclass
class ScanResult:
    """Result of a scan."""

    status: ScanStatus = ScanStatus.PENDING
    progress: ScanProgress = field(default_factory=ScanProgress)
    items: List[Any] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def failure(cls, error: str, progress: Optional[ScanProgress] = None) -> "ScanResult":
        return cls(
            status=ScanStatus.FAILED,
            progress=progress or ScanProgress(),
            errors=[error],
        )


class MediaScanner(ABC):
    """Abstract base for scanners over one watched directory."""

    def __init__(self, root_path: str, extensions: Optional[Iterable[str]] = None):
        self.root_path = Path(root_path)
        self.extensions = frozenset(
            e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions
        ) if extensions else DEFAULT_EXTENSIONS
        self._cancelled = False
        self._progress_callbacks: List[Callable[[ScanProgress], None]] = []

    def add_progress_callback(self, callback: Callable[[ScanProgress], None]) -> None:
        """Add a callback for progress updates."""
        self._progress_callbacks.append(callback)

    def _notify_progress(self, progress: ScanProgress) -> None:
        for callback in self._progress_callbacks:
            try:
                callback(progress)
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")

    def cancel(self) -> None:
        """Cancel the current scan."""
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @abstractmethod
    async def scan(self) -> ScanResult:
        """Scan the whole root path."""
        pass

    def is_media_file(self, path: Path) -> bool:
        return path.suffix.lower() in self.extensions

    def get_relative_path(self, path: Path) -> Path:
        try:
            return path.relative_to(self.root_path)
        except ValueError:
            return path
