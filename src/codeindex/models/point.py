"""Points stored in a vector store and the results returned by a search."""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, TypedDict


class Payload(TypedDict):
    """Non-vector metadata attached to a point."""

    filePath: str
    codeChunk: str
    startLine: int
    endLine: int


PAYLOAD_KEYS = ("filePath", "codeChunk", "startLine", "endLine")


def is_payload_valid(payload: Optional[Mapping[str, Any]]) -> bool:
    """Return True if every required payload key is present.

    Value types are not checked.
    """
    if not payload:
        return False
    return all(key in payload for key in PAYLOAD_KEYS)


@dataclass
class Point:
    """One indexed unit: a caller-assigned id, its vector and payload."""

    id: str
    vector: list[float]
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchResult:
    """A nearest-neighbor hit, scored as ``1 - cosine distance``."""

    id: str
    score: float
    payload: Payload
