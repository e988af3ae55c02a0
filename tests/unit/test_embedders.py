"""
Unit tests for the HTTP embedding clients.

Requests go through ``httpx.MockTransport``, so nothing leaves the process.
"""

import json
from typing import Callable

import httpx
import pytest

from codeindex.embedders import (
    GeminiEmbedder,
    MistralEmbedder,
    OllamaEmbedder,
    OpenAICompatibleEmbedder,
    OpenAIEmbedder,
    OpenRouterEmbedder,
    VoyageEmbedder,
    batch_by_tokens,
)
from codeindex.embedders.base import apply_query_prefix, estimate_tokens
from codeindex.embedders.models import NOMIC_CODE_QUERY_PREFIX
from codeindex.errors import ConfigurationError, EmbedderError

pytestmark = pytest.mark.unit


def openai_payload(texts: list[str], tokens: int = 5) -> dict:
    return {
        "data": [{"index": i, "embedding": [float(i), 0.5]} for i in range(len(texts))],
        "usage": {"prompt_tokens": tokens, "total_tokens": tokens},
    }


class Recorder:
    """MockTransport handler that records requests and replays responses."""

    def __init__(self, respond: Callable[[httpx.Request, dict], httpx.Response]):
        self.respond = respond
        self.requests: list[httpx.Request] = []
        self.bodies: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(request)
        self.bodies.append(body)
        return self.respond(request, body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def ok_recorder() -> Recorder:
    return Recorder(lambda request, body: httpx.Response(200, json=openai_payload(body["input"])))


class TestTokenBatching:
    def test_estimate_rounds_up(self):
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2

    def test_splits_on_budget(self):
        texts = ["a" * 40, "b" * 40, "c" * 40]  # 10 tokens each

        assert batch_by_tokens(texts, max_batch_tokens=25) == [texts[:2], texts[2:]]

    def test_oversized_items_are_skipped(self):
        texts = ["short", "x" * 100, "also short"]

        assert batch_by_tokens(texts, max_item_tokens=10) == [["short", "also short"]]

    def test_empty_input(self):
        assert batch_by_tokens([]) == []


class TestQueryPrefix:
    def test_prefix_applied_once(self):
        texts = ["find auth", f"{NOMIC_CODE_QUERY_PREFIX}already"]

        result = apply_query_prefix(texts, NOMIC_CODE_QUERY_PREFIX)

        assert result == [f"{NOMIC_CODE_QUERY_PREFIX}find auth", f"{NOMIC_CODE_QUERY_PREFIX}already"]

    def test_no_prefix_is_identity(self):
        assert apply_query_prefix(["a"], None) == ["a"]


class TestOpenAICompatibleEmbedder:
    """Tests for the OpenAI-style request/response handling."""

    async def test_request_shape(self, ok_recorder):
        embedder = OpenAICompatibleEmbedder(
            "https://llm.internal/v1/", "secret", "text-embedding-3-small", client=ok_recorder.client()
        )

        response = await embedder.create_embeddings(["one", "two"])

        request = ok_recorder.requests[0]
        assert str(request.url) == "https://llm.internal/v1/embeddings"
        assert request.headers["Authorization"] == "Bearer secret"
        assert ok_recorder.bodies[0] == {
            "input": ["one", "two"],
            "model": "text-embedding-3-small",
            "encoding_format": "float",
        }
        assert response.embeddings == [[0.0, 0.5], [1.0, 0.5]]
        assert response.usage.total_tokens == 5

    async def test_full_embeddings_url_used_as_is(self, ok_recorder):
        url = "https://azure.example/openai/deployments/emb/embeddings"
        embedder = OpenAICompatibleEmbedder(url, "k", client=ok_recorder.client())

        await embedder.create_embeddings(["x"])

        assert str(ok_recorder.requests[0].url) == url

    async def test_results_sorted_by_index(self):
        def respond(request, body):
            return httpx.Response(
                200,
                json={"data": [{"index": 1, "embedding": [2.0]}, {"index": 0, "embedding": [1.0]}]},
            )

        embedder = OpenAIEmbedder("k", client=Recorder(respond).client())

        response = await embedder.create_embeddings(["a", "b"])

        assert response.embeddings == [[1.0], [2.0]]
        assert response.usage.total_tokens == 0

    async def test_usage_summed_across_batches(self, ok_recorder):
        embedder = OpenAIEmbedder("k", client=ok_recorder.client())
        texts = ["a" * 32_000] * 13  # 8000 tokens each, over one request's budget

        response = await embedder.create_embeddings(texts)

        assert len(ok_recorder.requests) == 2
        assert len(response.embeddings) == 13
        assert response.usage.prompt_tokens == 10

    async def test_query_prefix_for_profiled_model(self, ok_recorder):
        embedder = OpenAICompatibleEmbedder(
            "http://localhost:8080/v1", "k", "nomic-embed-code", client=ok_recorder.client()
        )

        await embedder.create_embeddings(["parse config"])

        assert ok_recorder.bodies[0]["input"] == [f"{NOMIC_CODE_QUERY_PREFIX}parse config"]

    async def test_rate_limit_retried(self):
        statuses = iter([429, 429, 200])

        def respond(request, body):
            status = next(statuses)
            if status == 429:
                return httpx.Response(429, text="slow down")
            return httpx.Response(200, json=openai_payload(body["input"]))

        recorder = Recorder(respond)
        embedder = OpenAIEmbedder("k", client=recorder.client(), initial_retry_delay=0)

        response = await embedder.create_embeddings(["a"])

        assert len(recorder.requests) == 3
        assert response.embeddings == [[0.0, 0.5]]

    async def test_rate_limit_gives_up_after_max_retries(self):
        recorder = Recorder(lambda request, body: httpx.Response(429, text="slow down"))
        embedder = OpenAIEmbedder("k", client=recorder.client(), max_retries=2, initial_retry_delay=0)

        with pytest.raises(EmbedderError) as excinfo:
            await embedder.create_embeddings(["a"])

        assert excinfo.value.status_code == 429
        assert len(recorder.requests) == 2

    async def test_server_error_not_retried(self):
        recorder = Recorder(lambda request, body: httpx.Response(500, text="boom"))
        embedder = OpenAIEmbedder("k", client=recorder.client(), initial_retry_delay=0)

        with pytest.raises(EmbedderError, match="HTTP 500"):
            await embedder.create_embeddings(["a"])

        assert len(recorder.requests) == 1

    async def test_transport_error_wrapped(self):
        def respond(request, body):
            raise httpx.ConnectError("refused", request=request)

        embedder = OpenAIEmbedder("k", client=Recorder(respond).client())

        with pytest.raises(EmbedderError, match="request failed"):
            await embedder.create_embeddings(["a"])


class TestProviderVariants:
    async def test_gemini_endpoint(self, ok_recorder):
        embedder = GeminiEmbedder("k", client=ok_recorder.client())

        await embedder.create_embeddings(["a"])

        assert str(ok_recorder.requests[0].url) == (
            "https://generativelanguage.googleapis.com/v1beta/openai/embeddings"
        )
        assert ok_recorder.bodies[0]["model"] == "gemini-embedding-001"

    async def test_mistral_omits_encoding_format(self, ok_recorder):
        embedder = MistralEmbedder("k", client=ok_recorder.client())

        await embedder.create_embeddings(["a"])

        assert "encoding_format" not in ok_recorder.bodies[0]

    async def test_openrouter_pins_provider(self, ok_recorder):
        embedder = OpenRouterEmbedder("k", specific_provider="openai", client=ok_recorder.client())

        await embedder.create_embeddings(["a"])

        assert ok_recorder.bodies[0]["provider"] == {"order": ["openai"], "allow_fallbacks": False}
        assert ok_recorder.bodies[0]["model"] == "openai/text-embedding-3-large"

    async def test_openrouter_without_pin(self, ok_recorder):
        embedder = OpenRouterEmbedder("k", client=ok_recorder.client())

        await embedder.create_embeddings(["a"])

        assert "provider" not in ok_recorder.bodies[0]

    async def test_ollama_native_api(self):
        def respond(request, body):
            return httpx.Response(200, json={"embeddings": [[0.1, 0.2]], "prompt_eval_count": 7})

        recorder = Recorder(respond)
        embedder = OllamaEmbedder("http://gpu-box:11434/", client=recorder.client())

        response = await embedder.create_embeddings(["a"])

        assert str(recorder.requests[0].url) == "http://gpu-box:11434/api/embed"
        assert recorder.bodies[0] == {"model": "nomic-embed-text", "input": ["a"]}
        assert response.embeddings == [[0.1, 0.2]]
        assert response.usage.prompt_tokens == 7

    async def test_voyage_document_input_type(self):
        def respond(request, body):
            return httpx.Response(200, json=openai_payload(body["input"]))

        recorder = Recorder(respond)
        embedder = VoyageEmbedder("k", client=recorder.client())

        await embedder.create_embeddings(["a"])

        assert recorder.bodies[0]["input_type"] == "document"
        assert recorder.bodies[0]["model"] == "voyage-code-3"

    def test_voyage_requires_key(self):
        with pytest.raises(ConfigurationError, match="API key"):
            VoyageEmbedder("")


class TestValidateConfiguration:
    """Tests for mapping probe failures to readable errors."""

    @pytest.mark.parametrize(
        "status, message",
        [
            (401, "Authentication failed for openai"),
            (403, "Authentication failed for openai"),
            (404, "Model text-embedding-3-small not found"),
            (500, "HTTP 500"),
        ],
    )
    async def test_http_errors(self, status, message):
        recorder = Recorder(lambda request, body: httpx.Response(status, text="nope"))
        embedder = OpenAIEmbedder("k", client=recorder.client())

        result = await embedder.validate_configuration()

        assert result.valid is False
        assert message in result.error

    async def test_empty_response_is_invalid(self):
        recorder = Recorder(lambda request, body: httpx.Response(200, json={"data": []}))
        embedder = OpenAIEmbedder("k", client=recorder.client())

        result = await embedder.validate_configuration()

        assert result.valid is False
        assert "Invalid response" in result.error

    async def test_valid(self, ok_recorder):
        embedder = OpenAIEmbedder("k", client=ok_recorder.client())

        result = await embedder.validate_configuration()

        assert result.valid is True
        assert ok_recorder.bodies[0]["input"] == ["test"]
