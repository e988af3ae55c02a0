"""Embedder for Amazon Bedrock (Titan and Cohere embedding models).

Credentials come from the standard AWS chain (environment, shared config,
instance role), optionally narrowed to a named profile. boto3 is blocking,
so every ``invoke_model`` call runs in a worker thread.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from codeindex.constants import INITIAL_RETRY_DELAY, MAX_BATCH_RETRIES
from codeindex.embedders.base import apply_query_prefix, batch_by_tokens
from codeindex.embedders.models import EmbedderProvider, get_default_model_id, get_model_query_prefix
from codeindex.errors import ConfigurationError, EmbedderError
from codeindex.protocols import EmbedderInfo, EmbeddingResponse, EmbeddingUsage, ValidationResult

logger = logging.getLogger(__name__)

THROTTLING_CODES = frozenset({"ThrottlingException", "TooManyRequestsException", "ServiceUnavailableException"})
# Cohere models accept at most 96 texts per request.
COHERE_MAX_TEXTS = 96


class BedrockEmbedder:
    """Embeddings through the Bedrock runtime ``invoke_model`` API.

    Titan models embed one text per request; Cohere models take a list.
    """

    provider = EmbedderProvider.BEDROCK.value

    def __init__(
        self,
        region: str,
        profile: Optional[str] = None,
        model_id: Optional[str] = None,
        client: Optional[Any] = None,
        max_retries: int = MAX_BATCH_RETRIES,
        initial_retry_delay: float = INITIAL_RETRY_DELAY,
    ):
        if not region:
            raise ConfigurationError("Bedrock region is required", provider=self.provider, field="region")
        self.region = region
        self.profile = profile
        self.model_id = model_id or get_default_model_id(self.provider)
        self.max_retries = max_retries
        self.initial_retry_delay = initial_retry_delay
        self._client = client

    @property
    def client(self) -> Any:
        """Lazily created ``bedrock-runtime`` client."""
        if self._client is None:
            session = boto3.Session(profile_name=self.profile or None, region_name=self.region)
            self._client = session.client("bedrock-runtime")
        return self._client

    @property
    def embedder_info(self) -> EmbedderInfo:
        return EmbedderInfo(name=self.provider)

    @staticmethod
    def is_cohere(model: str) -> bool:
        return model.startswith("cohere.")

    def _invoke(self, model: str, body: dict[str, Any]) -> dict[str, Any]:
        response = self.client.invoke_model(
            modelId=model,
            body=json.dumps(body),
            contentType="application/json",
            accept="application/json",
        )
        return json.loads(response["body"].read())

    def _embed_sync(self, texts: list[str], model: str) -> tuple[list[list[float]], EmbeddingUsage]:
        if self.is_cohere(model):
            data = self._invoke(model, {"texts": texts, "input_type": "search_document"})
            return data.get("embeddings") or [], EmbeddingUsage()

        vectors = []
        usage = EmbeddingUsage()
        for text in texts:
            data = self._invoke(model, {"inputText": text})
            vectors.append(data["embedding"])
            tokens = data.get("inputTextTokenCount", 0) or 0
            usage.prompt_tokens += tokens
            usage.total_tokens += tokens
        return vectors, usage

    def _error(self, e: Exception) -> EmbedderError:
        if isinstance(e, ClientError):
            error = e.response.get("Error", {})
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            if error.get("Code") in THROTTLING_CODES:
                status = 429
            return EmbedderError(
                f"Bedrock {error.get('Code', 'error')}: {error.get('Message', e)}",
                provider=self.provider,
                status_code=status,
            )
        return EmbedderError(f"Bedrock request failed: {e}", provider=self.provider)

    async def _embed_batch_with_retries(
        self, texts: list[str], model: str
    ) -> tuple[list[list[float]], EmbeddingUsage]:
        for attempt in range(self.max_retries):
            try:
                return await asyncio.to_thread(self._embed_sync, texts, model)
            except (ClientError, BotoCoreError) as e:
                error = self._error(e)
                if error.status_code == 429 and attempt < self.max_retries - 1:
                    delay = self.initial_retry_delay * (2**attempt)
                    logger.warning(
                        f"Throttled by Bedrock, retrying in {delay:.1f}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"Bedrock embedder error (attempt {attempt + 1}/{self.max_retries}): {error}")
                raise error from e
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
            if self.is_cohere(model):
                groups = [batch[i : i + COHERE_MAX_TEXTS] for i in range(0, len(batch), COHERE_MAX_TEXTS)]
            else:
                groups = [batch]
            for group in groups:
                vectors, group_usage = await self._embed_batch_with_retries(group, model)
                embeddings.extend(vectors)
                usage.prompt_tokens += group_usage.prompt_tokens
                usage.total_tokens += group_usage.total_tokens
        return EmbeddingResponse(embeddings=embeddings, usage=usage)

    async def validate_configuration(self) -> ValidationResult:
        """Embed a single probe text with the configured model."""
        try:
            vectors, _ = await asyncio.to_thread(self._embed_sync, ["test"], self.model_id)
        except (ClientError, BotoCoreError) as e:
            error = self._error(e)
            if error.status_code in (401, 403):
                return ValidationResult(valid=False, error="Authentication failed for bedrock")
            if error.status_code == 404:
                return ValidationResult(valid=False, error=f"Model {self.model_id} not found at bedrock")
            return ValidationResult(valid=False, error=str(error))
        if not vectors:
            return ValidationResult(valid=False, error="Invalid response from bedrock")
        return ValidationResult(valid=True)
