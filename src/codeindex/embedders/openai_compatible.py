"""Embedders speaking the OpenAI ``/embeddings`` API."""

from typing import Any, Optional

import httpx

from codeindex.embedders.base import HttpEmbedder
from codeindex.embedders.models import EmbedderProvider, get_default_model_id


class OpenAICompatibleEmbedder(HttpEmbedder):
    """Any endpoint implementing ``POST {base_url}/embeddings``.

    Full URLs already ending in ``/embeddings`` (such as Azure deployment
    URLs) are used as-is.
    """

    provider = EmbedderProvider.OPENAI_COMPATIBLE.value

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs: Any,
    ):
        super().__init__(model_id or get_default_model_id(self.provider), client=client, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    @property
    def endpoint(self) -> str:
        if self.base_url.endswith("/embeddings"):
            return self.base_url
        return f"{self.base_url}/embeddings"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _body(self, texts: list[str], model: str) -> dict[str, Any]:
        return {"input": texts, "model": model, "encoding_format": "float"}

    def _request(self, texts: list[str], model: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        return self.endpoint, self._headers(), self._body(texts, model)


class OpenAIEmbedder(OpenAICompatibleEmbedder):
    provider = EmbedderProvider.OPENAI.value
    BASE_URL = "https://api.openai.com/v1"

    def __init__(self, api_key: str, model_id: Optional[str] = None, **kwargs: Any):
        super().__init__(self.BASE_URL, api_key, model_id, **kwargs)


class GeminiEmbedder(OpenAICompatibleEmbedder):
    """Gemini through its OpenAI-compatible surface."""

    provider = EmbedderProvider.GEMINI.value
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai"

    def __init__(self, api_key: str, model_id: Optional[str] = None, **kwargs: Any):
        super().__init__(self.BASE_URL, api_key, model_id, **kwargs)


class MistralEmbedder(OpenAICompatibleEmbedder):
    provider = EmbedderProvider.MISTRAL.value
    BASE_URL = "https://api.mistral.ai/v1"

    def __init__(self, api_key: str, model_id: Optional[str] = None, **kwargs: Any):
        super().__init__(self.BASE_URL, api_key, model_id, **kwargs)

    def _body(self, texts: list[str], model: str) -> dict[str, Any]:
        return {"input": texts, "model": model}


class VercelAiGatewayEmbedder(OpenAICompatibleEmbedder):
    provider = EmbedderProvider.VERCEL_AI_GATEWAY.value
    BASE_URL = "https://ai-gateway.vercel.sh/v1"

    def __init__(self, api_key: str, model_id: Optional[str] = None, **kwargs: Any):
        super().__init__(self.BASE_URL, api_key, model_id, **kwargs)


class OpenRouterEmbedder(OpenAICompatibleEmbedder):
    """OpenRouter, optionally pinned to one upstream provider."""

    provider = EmbedderProvider.OPENROUTER.value
    BASE_URL = "https://openrouter.ai/api/v1"

    def __init__(
        self,
        api_key: str,
        model_id: Optional[str] = None,
        specific_provider: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(self.BASE_URL, api_key, model_id, **kwargs)
        self.specific_provider = specific_provider

    def _body(self, texts: list[str], model: str) -> dict[str, Any]:
        body = super()._body(texts, model)
        if self.specific_provider:
            body["provider"] = {"order": [self.specific_provider], "allow_fallbacks": False}
        return body
