"""Protocol definitions for pluggable components."""

from codeindex.protocols.chunker import ChunkingStrategy
from codeindex.protocols.driver import DatabaseDriver
from codeindex.protocols.embedder import (
    EmbedderInfo,
    EmbeddingProvider,
    EmbeddingResponse,
    EmbeddingUsage,
    ValidationResult,
)
from codeindex.protocols.vector_store import VectorStore

__all__ = [
    "ChunkingStrategy",
    "DatabaseDriver",
    "EmbedderInfo",
    "EmbeddingProvider",
    "EmbeddingResponse",
    "EmbeddingUsage",
    "ValidationResult",
    "VectorStore",
]
