"""SentenceTransformer-based embedding provider."""

import asyncio
import logging
from typing import Optional

import numpy as np
from sentence_transformers import SentenceTransformer

from codeindex.embedders.models import EmbedderProvider, get_default_model_id
from codeindex.protocols import EmbedderInfo, EmbeddingResponse, ValidationResult

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """Local embedding provider using the sentence-transformers library.

    Uses all-MiniLM-L6-v2 by default - a fast, lightweight model that needs
    no network access once downloaded. Encoding runs in a worker thread so
    the event loop stays responsive.
    """

    def __init__(self, model_id: Optional[str] = None):
        """Initialize the embedder.

        Args:
            model_id: Name of the sentence-transformers model to use.
                      Defaults to all-MiniLM-L6-v2.
        """
        self.model_id = model_id or get_default_model_id(EmbedderProvider.SENTENCE_TRANSFORMERS)
        self._model: SentenceTransformer | None = None

    @property
    def model(self) -> SentenceTransformer:
        """Lazy-load the model on first access."""
        if self._model is None:
            logger.info(f"Loading embedding model {self.model_id}")
            self._model = SentenceTransformer(self.model_id)
        return self._model

    @property
    def dimension(self) -> int:
        return self.model.get_sentence_embedding_dimension()

    @property
    def embedder_info(self) -> EmbedderInfo:
        return EmbedderInfo(name=EmbedderProvider.SENTENCE_TRANSFORMERS.value)

    def _encode(self, texts: list[str]) -> np.ndarray:
        return self.model.encode(
            texts,
            convert_to_numpy=True,
            normalize_embeddings=True,  # For cosine similarity
        )

    async def create_embeddings(
        self, texts: list[str], model: Optional[str] = None
    ) -> EmbeddingResponse:
        """Generate embeddings for a batch of texts.

        Args:
            texts: List of text strings to embed
            model: Ignored; the model is fixed at construction

        Returns:
            One vector per input text, in input order
        """
        if not texts:
            return EmbeddingResponse(embeddings=[])

        vectors = await asyncio.to_thread(self._encode, texts)
        return EmbeddingResponse(embeddings=vectors.astype(np.float32).tolist())

    async def validate_configuration(self) -> ValidationResult:
        try:
            await asyncio.to_thread(self._encode, ["test"])
        except Exception as e:
            return ValidationResult(valid=False, error=f"Failed to load model {self.model_id}: {e}")
        return ValidationResult(valid=True)
