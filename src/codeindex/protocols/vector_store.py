"""Protocol implemented by every vector store backend."""

from typing import Optional, Protocol, Sequence, runtime_checkable

from codeindex.models import Point, SearchResult


@runtime_checkable
class VectorStore(Protocol):
    """Storage contract consumed by the scanner, the watcher and search.

    All operations may raise on underlying driver failure unless noted.
    """

    async def initialize(self) -> bool:
        """Create or open the collection. Returns True if it was (re)created."""
        ...

    async def upsert_points(self, points: Sequence[Point]) -> None: ...

    async def search(
        self,
        query_vector: Sequence[float],
        directory_prefix: Optional[str] = None,
        min_score: Optional[float] = None,
        max_results: Optional[int] = None,
    ) -> list[SearchResult]: ...

    async def delete_points_by_file_path(self, file_path: str) -> None: ...

    async def delete_points_by_multiple_file_paths(self, file_paths: Sequence[str]) -> None: ...

    async def delete_collection(self) -> None: ...

    async def clear_collection(self) -> None: ...

    async def collection_exists(self) -> bool:
        """Never raises; errors read as False."""
        ...

    async def has_indexed_data(self) -> bool:
        """Never raises; errors read as False."""
        ...

    async def mark_indexing_complete(self) -> None: ...

    async def mark_indexing_incomplete(self) -> None: ...
