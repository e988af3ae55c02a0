"""Embedder using a local Ollama server's native API."""

from typing import Any, Optional

import httpx

from codeindex.embedders.base import HttpEmbedder
from codeindex.embedders.models import EmbedderProvider, get_default_model_id
from codeindex.protocols import EmbeddingUsage

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaEmbedder(HttpEmbedder):
    """``POST {base_url}/api/embed`` with ``{"model", "input"}``."""

    provider = EmbedderProvider.OLLAMA.value

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_URL,
        model_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs: Any,
    ):
        super().__init__(model_id or get_default_model_id(self.provider), client=client, **kwargs)
        self.base_url = base_url.rstrip("/")

    def _request(self, texts: list[str], model: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        return (
            f"{self.base_url}/api/embed",
            {"Content-Type": "application/json"},
            {"model": model, "input": texts},
        )

    def _parse(self, data: dict[str, Any]) -> tuple[list[list[float]], EmbeddingUsage]:
        tokens = data.get("prompt_eval_count") or 0
        return data.get("embeddings") or [], EmbeddingUsage(prompt_tokens=tokens, total_tokens=tokens)
