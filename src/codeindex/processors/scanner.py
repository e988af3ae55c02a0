"""Full indexing pass over a workspace directory."""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from codeindex.models import CodeChunk
from codeindex.processors.indexing import ChunkIndexer

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Counters for one scan."""

    processed_files: int = 0
    skipped_files: int = 0
    indexed_chunks: int = 0
    deleted_files: int = 0
    failed_files: int = 0

    @property
    def complete(self) -> bool:
        return self.failed_files == 0


class DirectoryScanner(ChunkIndexer):
    """Indexes every eligible file under a workspace root.

    Unchanged files (same content hash as the cache) are skipped; changed
    files have their old points removed before the new chunks are stored;
    files that disappeared since the last scan are removed from the store.
    The pass is bracketed by ``mark_indexing_incomplete`` /
    ``mark_indexing_complete`` so a crash leaves the index flagged as torn.
    """

    def list_files(self, workspace_path: Path) -> list[tuple[Path, str]]:
        """Walk the workspace, pruning ignored directories early."""
        files = []
        for root, dirnames, filenames in os.walk(workspace_path):
            rel_root = os.path.relpath(root, workspace_path)
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not self.ignore_filter.is_ignored(os.path.normpath(os.path.join(rel_root, d)), is_dir=True)
            )
            for filename in sorted(filenames):
                rel_path = os.path.normpath(os.path.join(rel_root, filename))
                if self.ignore_filter.is_ignored(rel_path):
                    continue
                files.append((Path(root) / filename, rel_path))
        return files

    async def scan_directory(self, workspace_path: Path | str) -> ScanResult:
        """Run a full (incremental by hash) indexing pass.

        Args:
            workspace_path: Root directory of the workspace

        Returns:
            ScanResult with per-pass counters
        """
        workspace = Path(workspace_path).resolve()
        result = ScanResult()

        await self.vector_store.mark_indexing_incomplete()

        files = await asyncio.to_thread(self.list_files, workspace)
        logger.info(f"Scanning {len(files)} candidate files in {workspace}")

        seen: set[str] = set()
        changed: dict[str, str] = {}  # relative path -> new hash
        pending: list[CodeChunk] = []

        for full_path, rel_path in files:
            read = self.read_file(full_path, rel_path)
            if read is None:
                continue
            text, file_hash = read
            seen.add(rel_path)

            if self.cache.get_hash(rel_path) == file_hash:
                result.skipped_files += 1
                continue

            changed[rel_path] = file_hash
            pending.extend(self.chunk_file(text, rel_path, file_hash))
            logger.debug(f"  {rel_path}")

        # Old points of changed files go before the new ones arrive
        previously_indexed = [path for path in changed if self.cache.get_hash(path) is not None]
        if previously_indexed:
            await self.vector_store.delete_points_by_multiple_file_paths(previously_indexed)

        stored, failed = await self.index_chunks(pending)
        result.indexed_chunks = stored
        result.failed_files = len(failed)

        for rel_path, file_hash in changed.items():
            if rel_path in failed:
                # Forget the hash so the next scan retries this file
                self.cache.delete_hash(rel_path)
            else:
                self.cache.update_hash(rel_path, file_hash)
                result.processed_files += 1

        deleted = sorted(self.cache.all_paths() - seen)
        if deleted:
            await self.vector_store.delete_points_by_multiple_file_paths(deleted)
            for rel_path in deleted:
                self.cache.delete_hash(rel_path)
            result.deleted_files = len(deleted)

        self.cache.save()

        if result.complete:
            await self.vector_store.mark_indexing_complete()
            logger.info(
                f"Indexed {result.processed_files} files ({result.indexed_chunks} chunks), "
                f"{result.skipped_files} unchanged, {result.deleted_files} removed"
            )
        else:
            logger.error(f"Indexing incomplete: {result.failed_files} files could not be stored")
        return result
