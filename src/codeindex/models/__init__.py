"""Data models for codeindex."""

from codeindex.models.chunk import CodeChunk
from codeindex.models.point import (
    PAYLOAD_KEYS,
    Payload,
    Point,
    SearchResult,
    is_payload_valid,
)

__all__ = [
    "CodeChunk",
    "PAYLOAD_KEYS",
    "Payload",
    "Point",
    "SearchResult",
    "is_payload_valid",
]
