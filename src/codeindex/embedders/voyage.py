"""Embedder for the Voyage AI API."""

from typing import Any, Optional

import httpx

from codeindex.embedders.base import HttpEmbedder
from codeindex.embedders.models import EmbedderProvider, get_default_model_id
from codeindex.errors import ConfigurationError


class VoyageEmbedder(HttpEmbedder):
    """Voyage AI embeddings; indexing requests use ``input_type=document``."""

    provider = EmbedderProvider.VOYAGE.value
    URL = "https://api.voyageai.com/v1/embeddings"

    def __init__(
        self,
        api_key: str,
        model_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs: Any,
    ):
        if not api_key:
            raise ConfigurationError("Voyage AI API key is required", provider=self.provider, field="api_key")
        super().__init__(model_id or get_default_model_id(self.provider), client=client, **kwargs)
        self.api_key = api_key

    def _request(self, texts: list[str], model: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        return (
            self.URL,
            {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            {"input": texts, "model": model, "input_type": "document"},
        )
