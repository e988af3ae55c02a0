"""Semantic search over an indexed workspace."""

import logging
from typing import Optional

from codeindex.errors import CodeIndexError, EmbedderError, VectorStoreError
from codeindex.models import SearchResult
from codeindex.processors import FileHashCache
from codeindex.protocols import EmbeddingProvider, VectorStore

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200
NOT_INDEXED_MESSAGE = "Workspace is not indexed yet (or indexing did not finish). Run `codeindex index`."


class CodeSearchService:
    """Embeds a natural-language query and runs it against the vector store."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        min_score: Optional[float] = None,
        max_results: Optional[int] = None,
        cache: Optional[FileHashCache] = None,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.min_score = min_score
        self.max_results = max_results
        self.cache = cache
        self._ready = False

    async def ensure_ready(self) -> bool:
        """Open the store once; False when there is nothing searchable yet.

        Opening detects an embedding model change. The store is then rebuilt
        empty, so the hash cache is dropped with it and the next index run
        embeds every file.
        """
        if self._ready:
            return True
        if not await self.vector_store.collection_exists():
            return False
        if await self.vector_store.initialize():
            logger.warning("Vector size changed since the last index, the workspace must be re-indexed")
            if self.cache is not None:
                self.cache.clear()
            return False
        self._ready = True
        return True

    async def search(
        self,
        query: str,
        directory_prefix: Optional[str] = None,
        max_results: Optional[int] = None,
    ) -> list[SearchResult]:
        """Return the chunks most similar to ``query``.

        Raises:
            CodeIndexError: the workspace has no complete index
            EmbedderError: the query could not be embedded
            VectorStoreError: the store failed to run the query
        """
        if not await self.ensure_ready() or not await self.vector_store.has_indexed_data():
            raise CodeIndexError(NOT_INDEXED_MESSAGE)

        response = await self.embedder.create_embeddings([query])
        if not response.embeddings:
            raise EmbedderError("Embedder returned no vector for the query", self.embedder.embedder_info.name)

        try:
            results = await self.vector_store.search(
                response.embeddings[0],
                directory_prefix=directory_prefix,
                min_score=self.min_score,
                max_results=max_results or self.max_results,
            )
        except CodeIndexError:
            raise
        except Exception as e:
            raise VectorStoreError(f"Search failed: {e}") from e
        logger.debug(f"{len(results)} results for {query!r}")
        return results


def format_results(results: list[SearchResult], query: str) -> str:
    """Ranked, human-readable listing of search results."""
    if not results:
        return f"No results found for: {query}"

    lines = []
    for i, result in enumerate(results, 1):
        payload = result.payload
        text = payload["codeChunk"][:SNIPPET_LENGTH].replace("\n", " ")
        if len(payload["codeChunk"]) > SNIPPET_LENGTH:
            text += "..."

        lines.append(
            f"{i}. [{result.score:.3f}] {payload['filePath']}:{payload['startLine']}-{payload['endLine']}"
        )
        lines.append(f"   {text}")
        lines.append("")

    return "\n".join(lines)
