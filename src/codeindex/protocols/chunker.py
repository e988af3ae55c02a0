"""Protocol for code chunking strategies."""

from typing import Protocol, runtime_checkable

from codeindex.models import CodeChunk


@runtime_checkable
class ChunkingStrategy(Protocol):
    """Protocol for code chunking strategies."""

    def chunk(self, text: str, file_path: str, file_hash: str = "") -> list[CodeChunk]:
        """Split file content into line-ranged chunks."""
        ...
