"""Incremental index updates driven by file system events."""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from codeindex.constants import MAX_PENDING_WATCH_EVENTS, WATCH_DEBOUNCE_SECONDS
from codeindex.models import CodeChunk
from codeindex.processors.indexing import ChunkIndexer

logger = logging.getLogger(__name__)

CHANGED = "changed"
DELETED = "deleted"


@dataclass
class WatchBatchResult:
    """Outcome of one debounced batch of file changes."""

    indexed: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class _WorkspaceEventHandler(FileSystemEventHandler):
    """Forwards watchdog events (observer thread) to the watcher's event loop."""

    def __init__(self, watcher: "FileWatcher", loop: asyncio.AbstractEventLoop):
        self.watcher = watcher
        self.loop = loop

    def _submit(self, path: Any, kind: str) -> None:
        self.loop.call_soon_threadsafe(self.watcher.enqueue, os.fsdecode(path), kind)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._submit(event.src_path, CHANGED)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._submit(event.src_path, CHANGED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._submit(event.src_path, DELETED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._submit(event.src_path, DELETED)
            self._submit(event.dest_path, CHANGED)


class FileWatcher(ChunkIndexer):
    """Keeps the index of one workspace current while files change.

    Events are collapsed per path (last event wins) and processed in
    debounced batches. Each batch is bracketed by
    ``mark_indexing_incomplete`` / ``mark_indexing_complete``.
    """

    def __init__(
        self,
        workspace_path: Path | str,
        *args: Any,
        debounce_seconds: float = WATCH_DEBOUNCE_SECONDS,
        max_pending_events: int = MAX_PENDING_WATCH_EVENTS,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.workspace_path = Path(workspace_path).resolve()
        self.debounce_seconds = debounce_seconds
        self.max_pending_events = max_pending_events
        self._pending: dict[str, str] = {}
        self._wakeup: Optional[asyncio.Event] = None
        self._observer: Optional[Any] = None

    def _relative(self, path: str) -> Optional[str]:
        try:
            rel_path = os.path.relpath(path, self.workspace_path)
        except ValueError:
            return None
        rel_path = os.path.normpath(rel_path)
        if rel_path == os.pardir or rel_path.startswith(os.pardir + os.sep):
            return None
        return rel_path

    def enqueue(self, path: str, kind: str) -> None:
        """Record a change; must run on the event loop thread."""
        rel_path = self._relative(path)
        if rel_path is None or self.ignore_filter.is_ignored(rel_path):
            return
        if rel_path not in self._pending and len(self._pending) >= self.max_pending_events:
            logger.warning(f"Too many pending changes, dropping event for {rel_path}")
            return
        self._pending[rel_path] = kind
        if self._wakeup is not None:
            self._wakeup.set()

    def start(self) -> None:
        """Start the watchdog observer. Call from within the running loop."""
        if self._observer is not None:
            return
        self._wakeup = asyncio.Event()
        handler = _WorkspaceEventHandler(self, asyncio.get_running_loop())
        self._observer = Observer()
        self._observer.daemon = True
        self._observer.schedule(handler, str(self.workspace_path), recursive=True)
        self._observer.start()
        logger.info(f"Watching {self.workspace_path}")

    def stop(self) -> None:
        if self._observer is None:
            return
        observer, self._observer = self._observer, None
        observer.stop()
        observer.join(timeout=5.0)

    async def run(self) -> None:
        """Process batches until cancelled."""
        self.start()
        try:
            while True:
                await self._wakeup.wait()
                await asyncio.sleep(self.debounce_seconds)
                self._wakeup.clear()
                changes, self._pending = self._pending, {}
                if changes:
                    await self.handle_changes(changes)
        finally:
            self.stop()

    async def handle_changes(self, changes: dict[str, str]) -> WatchBatchResult:
        """Apply a batch of ``{relative path: "changed" | "deleted"}`` to the index."""
        result = WatchBatchResult()
        await self.vector_store.mark_indexing_incomplete()

        to_delete: list[str] = []
        to_index: dict[str, tuple[str, str]] = {}

        for rel_path, kind in sorted(changes.items()):
            read = None
            if kind != DELETED:
                read = self.read_file(self.workspace_path / rel_path, rel_path)

            if read is None:
                # Gone, unreadable or no longer eligible
                if self.cache.get_hash(rel_path) is not None:
                    to_delete.append(rel_path)
                continue

            text, file_hash = read
            if self.cache.get_hash(rel_path) == file_hash:
                result.unchanged.append(rel_path)
                continue
            to_index[rel_path] = (text, file_hash)

        stale = to_delete + [path for path in to_index if self.cache.get_hash(path) is not None]
        if stale:
            await self.vector_store.delete_points_by_multiple_file_paths(stale)
        for rel_path in to_delete:
            self.cache.delete_hash(rel_path)
        result.deleted = to_delete

        chunks: list[CodeChunk] = []
        for rel_path, (text, file_hash) in to_index.items():
            chunks.extend(self.chunk_file(text, rel_path, file_hash))
        _, failed = await self.index_chunks(chunks)

        for rel_path, (_, file_hash) in to_index.items():
            if rel_path in failed:
                self.cache.delete_hash(rel_path)
                result.failed.append(rel_path)
            else:
                self.cache.update_hash(rel_path, file_hash)
                result.indexed.append(rel_path)

        self.cache.save()

        if not result.failed:
            await self.vector_store.mark_indexing_complete()
        logger.info(
            f"Watcher batch: {len(result.indexed)} indexed, {len(result.deleted)} removed, "
            f"{len(result.failed)} failed"
        )
        return result
