"""Shared plumbing for HTTP embedding clients.

Texts are grouped into requests by an estimated token budget (4 characters
per token); items over the per-item limit are skipped with a warning. Rate
limited requests (HTTP 429) are retried with exponential backoff.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from codeindex.constants import (
    INITIAL_RETRY_DELAY,
    MAX_BATCH_RETRIES,
    MAX_BATCH_TOKENS,
    MAX_ITEM_TOKENS,
)
from codeindex.embedders.models import get_model_query_prefix
from codeindex.errors import EmbedderError
from codeindex.protocols import EmbedderInfo, EmbeddingResponse, EmbeddingUsage, ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0


def estimate_tokens(text: str) -> int:
    return -(-len(text) // 4)


def apply_query_prefix(texts: list[str], prefix: Optional[str]) -> list[str]:
    """Prepend a model's query prefix, unless already present or too long."""
    if not prefix:
        return texts

    processed = []
    for index, text in enumerate(texts):
        if text.startswith(prefix):
            processed.append(text)
            continue
        prefixed = f"{prefix}{text}"
        if estimate_tokens(prefixed) > MAX_ITEM_TOKENS:
            logger.warning(
                f"Text {index} would exceed {MAX_ITEM_TOKENS} tokens with its prefix, embedding it unprefixed"
            )
            processed.append(text)
        else:
            processed.append(prefixed)
    return processed


def batch_by_tokens(
    texts: list[str],
    max_batch_tokens: int = MAX_BATCH_TOKENS,
    max_item_tokens: int = MAX_ITEM_TOKENS,
) -> list[list[str]]:
    """Split texts into request batches under the token budget.

    Oversized items are dropped, so the number of returned vectors can be
    smaller than the number of inputs.
    """
    batches: list[list[str]] = []
    current: list[str] = []
    current_tokens = 0

    for index, text in enumerate(texts):
        tokens = estimate_tokens(text)
        if tokens > max_item_tokens:
            logger.warning(f"Text {index} exceeds {max_item_tokens} tokens ({tokens}), skipping")
            continue
        if current and current_tokens + tokens > max_batch_tokens:
            batches.append(current)
            current, current_tokens = [], 0
        current.append(text)
        current_tokens += tokens

    if current:
        batches.append(current)
    return batches


class HttpEmbedder:
    """Base class for embedders that POST batches of texts to an HTTP API.

    Subclasses set ``provider`` and implement ``_request`` (URL, headers and
    JSON body for a batch) and ``_parse`` (vectors and usage from the JSON
    response).
    """

    provider = "http"

    def __init__(
        self,
        model_id: str,
        client: Optional[httpx.AsyncClient] = None,
        max_retries: int = MAX_BATCH_RETRIES,
        initial_retry_delay: float = INITIAL_RETRY_DELAY,
    ):
        self.model_id = model_id
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        return self._client

    @property
    def embedder_info(self) -> EmbedderInfo:
        return EmbedderInfo(name=self.provider)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _request(self, texts: list[str], model: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        raise NotImplementedError

    def _parse(self, data: dict[str, Any]) -> tuple[list[list[float]], EmbeddingUsage]:
        items = sorted(data.get("data") or [], key=lambda item: item.get("index", 0))
        usage = data.get("usage") or {}
        return (
            [item["embedding"] for item in items],
            EmbeddingUsage(
                prompt_tokens=usage.get("prompt_tokens", usage.get("total_tokens", 0)) or 0,
                total_tokens=usage.get("total_tokens", 0) or 0,
            ),
        )

    async def _post(self, texts: list[str], model: str) -> dict[str, Any]:
        url, headers, body = self._request(texts, model)
        try:
            response = await self.client.post(url, headers=headers, json=body)
        except httpx.HTTPError as e:
            raise EmbedderError(f"{self.provider} request failed: {e}", provider=self.provider) from e

        if response.status_code >= 400:
            raise EmbedderError(
                f"{self.provider} returned HTTP {response.status_code}: {response.text[:500]}",
                provider=self.provider,
                status_code=response.status_code,
            )
        return response.json()

    async def _embed_batch_with_retries(
        self, texts: list[str], model: str
    ) -> tuple[list[list[float]], EmbeddingUsage]:
        for attempt in range(self.max_retries):
            try:
                return self._parse(await self._post(texts, model))
            except EmbedderError as e:
                if e.status_code == 429 and attempt < self.max_retries - 1:
                    delay = self.initial_retry_delay * (2**attempt)
                    logger.warning(
                        f"Rate limited by {self.provider}, retrying in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"{self.provider} embedder error (attempt {attempt + 1}/{self.max_retries}): {e}")
                raise
        raise EmbedderError(
            f"Failed to create embeddings after {self.max_retries} attempts", provider=self.provider
        )

    async def create_embeddings(
        self, texts: list[str], model: Optional[str] = None
    ) -> EmbeddingResponse:
        model = model or self.model_id
        texts = apply_query_prefix(texts, get_model_query_prefix(self.provider, model))

        embeddings: list[list[float]] = []
        usage = EmbeddingUsage()
        for batch in batch_by_tokens(texts):
            vectors, batch_usage = await self._embed_batch_with_retries(batch, model)
            embeddings.extend(vectors)
            usage.prompt_tokens += batch_usage.prompt_tokens
            usage.total_tokens += batch_usage.total_tokens
        return EmbeddingResponse(embeddings=embeddings, usage=usage)

    async def validate_configuration(self) -> ValidationResult:
        """Embed a single probe text and check a vector comes back."""
        try:
            vectors, _ = self._parse(await self._post(["test"], self.model_id))
        except EmbedderError as e:
            if e.status_code in (401, 403):
                return ValidationResult(valid=False, error=f"Authentication failed for {self.provider}")
            if e.status_code == 404:
                return ValidationResult(valid=False, error=f"Model {self.model_id} not found at {self.provider}")
            return ValidationResult(valid=False, error=str(e))
        if not vectors:
            return ValidationResult(valid=False, error=f"Invalid response from {self.provider}")
        return ValidationResult(valid=True)
