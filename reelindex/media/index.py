"""
Media index of known file paths.

Used while scanning watched folders to tell library files from new,
unsorted ones.

Snapshots are immutable. A rebuild enumerates the library in a worker
thread, builds a new snapshot off to the side and publishes it by a single
reference assignment; readers never lock and never see a partial set.

Overlapping rebuilds follow a last-started-wins policy: each rebuild takes
a generation number when it starts and is published only if no rebuild
with a newer generation has been published already. An older rebuild that
finishes late is discarded.
"""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, FrozenSet, Iterable, Optional, Set, Tuple

from reelindex.media.library import MediaLibrary
from reelindex.media.models import normalize_path

logger = logging.getLogger(__name__)


class IndexRebuildFailed(Exception):
    """Library enumeration failed; the previous snapshot stays authoritative."""

    def __init__(
        self,
        message: str,
        index_name: str = "",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.index_name = index_name
        self.original_error = original_error


@dataclass(frozen=True)
class IndexSnapshot:
    """Immutable point-in-time set of known paths."""

    paths: FrozenSet[str] = frozenset()
    generation: int = 0
    built_at: Optional[datetime] = field(default=None, compare=False)

    def __contains__(self, path: object) -> bool:
        return path in self.paths

    def __len__(self) -> int:
        return len(self.paths)


class PathIndex:
    """
    One rebuildable set of normalized file paths.

    Args:
        name: Index name used in logs.
        enumerate_paths: Callable returning every path that belongs in the
            index; called from a worker thread during rebuilds.
    """

    def __init__(self, name: str, enumerate_paths: Callable[[], Iterable[str]]):
        self.name = name
        self._enumerate_paths = enumerate_paths
        self._snapshot = IndexSnapshot()
        self._generation = 0
        self._lock = threading.Lock()  # guards generation/publish, never readers

    @property
    def snapshot(self) -> IndexSnapshot:
        return self._snapshot

    def contains(self, path: str) -> bool:
        """O(1) membership test against the current snapshot."""
        if not path:
            return False
        return normalize_path(path) in self._snapshot.paths

    __contains__ = contains

    def __len__(self) -> int:
        return len(self._snapshot)

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def _build(self, generation: int) -> IndexSnapshot:
        paths = frozenset(
            normalize_path(path) for path in self._enumerate_paths() if path
        )
        return IndexSnapshot(paths=paths, generation=generation, built_at=datetime.now())

    def _publish(self, snapshot: IndexSnapshot) -> bool:
        with self._lock:
            if snapshot.generation <= self._snapshot.generation:
                logger.debug(
                    f"Discarding stale {self.name} index build "
                    f"(generation {snapshot.generation} <= {self._snapshot.generation})"
                )
                return False
            self._snapshot = snapshot
        logger.info(f"Published {self.name} index: {len(snapshot)} paths (generation {snapshot.generation})")
        return True

    def _failed(self, generation: int, error: Exception) -> IndexRebuildFailed:
        logger.error(
            f"{self.name} index rebuild {generation} failed, keeping generation "
            f"{self._snapshot.generation}: {error}"
        )
        return IndexRebuildFailed(
            f"Failed to rebuild {self.name} index: {error}",
            index_name=self.name,
            original_error=error,
        )

    async def _rebuild(self, generation: int) -> IndexSnapshot:
        try:
            snapshot = await asyncio.to_thread(self._build, generation)
        except Exception as e:
            raise self._failed(generation, e) from e
        self._publish(snapshot)
        return self._snapshot

    def rebuild(self) -> "asyncio.Task[IndexSnapshot]":
        """
        Start a background rebuild.

        Must be called from a running event loop. The returned task
        resolves to the snapshot current after this build was handled, or
        raises IndexRebuildFailed.
        """
        generation = self._next_generation()
        return asyncio.get_running_loop().create_task(
            self._rebuild(generation), name=f"{self.name}-index-rebuild-{generation}"
        )

    def rebuild_sync(self) -> IndexSnapshot:
        """Rebuild in the calling thread."""
        generation = self._next_generation()
        try:
            snapshot = self._build(generation)
        except Exception as e:
            raise self._failed(generation, e) from e
        self._publish(snapshot)
        return self._snapshot


class MediaIndex:
    """
    Movie and TV path indexes over a media library.

    The two indexes are independent; a failure rebuilding one never
    affects the other's published snapshot.
    """

    def __init__(self, library: MediaLibrary):
        self.library = library
        self.movies = PathIndex("movies", library.movie_file_paths)
        self.tv = PathIndex("tv", library.tv_file_paths)
        self._background: Set[asyncio.Task] = set()
        self._watching = False

    def movie_contains(self, path: str) -> bool:
        return self.movies.contains(path)

    def tv_contains(self, path: str) -> bool:
        return self.tv.contains(path)

    def contains(self, path: str) -> bool:
        """True if the path is known to either index."""
        return self.movies.contains(path) or self.tv.contains(path)

    def rebuild(self) -> "asyncio.Task[Tuple[IndexSnapshot, IndexSnapshot]]":
        """Rebuild both indexes; the task resolves to (movies, tv)."""
        movie_task = self.movies.rebuild()
        tv_task = self.tv.rebuild()

        async def _both() -> Tuple[IndexSnapshot, IndexSnapshot]:
            movies, tv = await asyncio.gather(movie_task, tv_task)
            return movies, tv

        return asyncio.get_running_loop().create_task(_both(), name="media-index-rebuild")

    def rebuild_sync(self) -> Tuple[IndexSnapshot, IndexSnapshot]:
        return self.movies.rebuild_sync(), self.tv.rebuild_sync()

    def watch_library(self) -> None:
        """Rebuild after every library change notification."""
        if not self._watching:
            self.library.add_change_listener(self._on_library_changed)
            self._watching = True

    def unwatch_library(self) -> None:
        if self._watching:
            self.library.remove_change_listener(self._on_library_changed)
            self._watching = False

    def _on_library_changed(self, library: MediaLibrary) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.rebuild_sync()
            return

        task = self.rebuild()
        self._background.add(task)
        task.add_done_callback(self._background_done)

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Background index rebuild failed: {task.exception()}")

    async def wait_idle(self) -> None:
        """Wait for background rebuilds started by library changes."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
