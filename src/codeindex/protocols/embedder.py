"""Protocol for embedding model providers."""

from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable


@dataclass
class EmbeddingUsage:
    prompt_tokens: int = 0
    total_tokens: int = 0


@dataclass
class EmbeddingResponse:
    """Vectors in the same order as the input texts."""

    embeddings: list[list[float]]
    usage: EmbeddingUsage = field(default_factory=EmbeddingUsage)


@dataclass
class ValidationResult:
    valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class EmbedderInfo:
    name: str


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding model providers.

    Allows swapping between local models (sentence-transformers) and
    API-based models (OpenAI, Ollama, Voyage, ...).
    """

    @property
    def embedder_info(self) -> EmbedderInfo:
        """Return identifying information for this embedder."""
        ...

    async def create_embeddings(
        self, texts: list[str], model: Optional[str] = None
    ) -> EmbeddingResponse:
        """Generate embeddings for a batch of texts."""
        ...

    async def validate_configuration(self) -> ValidationResult:
        """Check that the provider is reachable and the settings are usable."""
        ...
