"""Embedding and upserting of code chunks, shared by the scanner and the watcher."""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Optional

from codeindex.constants import BATCH_SEGMENT_THRESHOLD, INITIAL_RETRY_DELAY, MAX_BATCH_RETRIES
from codeindex.errors import EmbedderError
from codeindex.models import CodeChunk, Point
from codeindex.processors.cache import FileHashCache, content_hash
from codeindex.processors.chunker import LineChunker
from codeindex.processors.ignore import IgnoreFilter
from codeindex.protocols import ChunkingStrategy, EmbeddingProvider, VectorStore

logger = logging.getLogger(__name__)

POINT_ID_NAMESPACE = uuid.UUID("6ba7b811-9dad-11d1-80b4-00c04fd430c8")


def point_id_for_chunk(chunk: CodeChunk) -> str:
    """Deterministic id: the same file range always maps to the same point."""
    key = f"{chunk.file_path}:{chunk.start_line}:{chunk.end_line}:{chunk.file_hash}"
    return str(uuid.uuid5(POINT_ID_NAMESPACE, key))


class ChunkIndexer:
    """Reads, chunks, embeds and stores files for one workspace."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        cache: FileHashCache,
        ignore_filter: Optional[IgnoreFilter] = None,
        chunker: Optional[ChunkingStrategy] = None,
        batch_size: int = BATCH_SEGMENT_THRESHOLD,
        max_batch_retries: int = MAX_BATCH_RETRIES,
        initial_retry_delay: float = INITIAL_RETRY_DELAY,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.cache = cache
        self.ignore_filter = ignore_filter or IgnoreFilter()
        self.chunker = chunker or LineChunker()
        self.batch_size = max(1, batch_size)
        self.max_batch_retries = max(1, max_batch_retries)
        self.initial_retry_delay = initial_retry_delay

    def read_file(self, full_path: Path, relative_path: str) -> Optional[tuple[str, str]]:
        """Return ``(text, hash)`` for an indexable file, None when it should be skipped."""
        try:
            raw_content = full_path.read_bytes()
        except (PermissionError, OSError):
            return None

        if not self.ignore_filter.should_index(full_path, relative_path, raw_content):
            return None

        return raw_content.decode("utf-8", errors="replace"), content_hash(raw_content)

    def chunk_file(self, text: str, relative_path: str, file_hash: str) -> list[CodeChunk]:
        return self.chunker.chunk(text, relative_path, file_hash)

    async def _embed_and_upsert(self, chunks: list[CodeChunk]) -> None:
        response = await self.embedder.create_embeddings([chunk.text for chunk in chunks])
        if len(response.embeddings) != len(chunks):
            raise EmbedderError(
                f"Embedder returned {len(response.embeddings)} vectors for {len(chunks)} chunks",
                provider=self.embedder.embedder_info.name,
            )

        points = [
            Point(id=point_id_for_chunk(chunk), vector=list(vector), payload=chunk.to_payload())
            for chunk, vector in zip(chunks, response.embeddings)
        ]
        await self.vector_store.upsert_points(points)

    async def process_batch(self, chunks: list[CodeChunk]) -> bool:
        """Embed and store one batch, retrying with exponential backoff.

        Returns:
            True if the batch was stored, False once all attempts failed
        """
        for attempt in range(self.max_batch_retries):
            try:
                await self._embed_and_upsert(chunks)
                return True
            except Exception as e:
                logger.warning(
                    f"Batch of {len(chunks)} chunks failed (attempt {attempt + 1}/{self.max_batch_retries}): {e}"
                )
                if attempt < self.max_batch_retries - 1:
                    await asyncio.sleep(self.initial_retry_delay * (2**attempt))

        logger.error(f"Giving up on batch of {len(chunks)} chunks after {self.max_batch_retries} attempts")
        return False

    async def index_chunks(self, chunks: list[CodeChunk]) -> tuple[int, set[str]]:
        """Store chunks in batches of ``batch_size``.

        Returns:
            ``(stored chunk count, paths of files with a failed batch)``
        """
        stored = 0
        failed_files: set[str] = set()
        for start in range(0, len(chunks), self.batch_size):
            batch = chunks[start : start + self.batch_size]
            if await self.process_batch(batch):
                stored += len(batch)
            else:
                failed_files.update(chunk.file_path for chunk in batch)
        return stored, failed_files
