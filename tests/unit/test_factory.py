"""
Unit tests for the service factory.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from codeindex.config import CodeIndexConfig, ProviderOptions
from codeindex.embedders import (
    BedrockEmbedder,
    GeminiEmbedder,
    MistralEmbedder,
    OllamaEmbedder,
    OpenAICompatibleEmbedder,
    OpenAIEmbedder,
    OpenRouterEmbedder,
    SentenceTransformerEmbedder,
    VercelAiGatewayEmbedder,
    VoyageEmbedder,
)
from codeindex.errors import ConfigurationError
from codeindex.factory import CodeIndexServiceFactory, CodeIndexServices
from codeindex.protocols import ValidationResult
from codeindex.storage import LanceDBDriver, LanceDBVectorStore, QdrantVectorStore

pytestmark = pytest.mark.unit


def make_factory(workspace, tmp_path, **config_values) -> CodeIndexServiceFactory:
    config_values.setdefault("storage_root", str(tmp_path / "storage"))
    return CodeIndexServiceFactory(CodeIndexConfig(**config_values), workspace)


class TestCreateEmbedder:
    """Tests for provider selection and required settings."""

    @pytest.mark.parametrize(
        "provider, options, expected",
        [
            ("openai", {"api_key": "k"}, OpenAIEmbedder),
            ("ollama", {"base_url": "http://localhost:11434"}, OllamaEmbedder),
            ("openai-compatible", {"base_url": "http://x/v1", "api_key": "k"}, OpenAICompatibleEmbedder),
            ("gemini", {"api_key": "k"}, GeminiEmbedder),
            ("mistral", {"api_key": "k"}, MistralEmbedder),
            ("vercel-ai-gateway", {"api_key": "k"}, VercelAiGatewayEmbedder),
            ("openrouter", {"api_key": "k"}, OpenRouterEmbedder),
            ("voyage", {"api_key": "k"}, VoyageEmbedder),
            ("bedrock", {"region": "us-east-1"}, BedrockEmbedder),
            ("sentence-transformers", {}, SentenceTransformerEmbedder),
        ],
    )
    def test_builds_each_provider(self, workspace, tmp_path, provider, options, expected):
        factory = make_factory(
            workspace, tmp_path, embedder_provider=provider, providers={provider: ProviderOptions(**options)}
        )

        assert isinstance(factory.create_embedder(), expected)

    @pytest.mark.parametrize(
        "provider, options, field",
        [
            ("openai", {}, "api_key"),
            ("ollama", {}, "base_url"),
            ("openai-compatible", {"api_key": "k"}, "base_url"),
            ("openai-compatible", {"base_url": "http://x/v1"}, "api_key"),
            ("gemini", {}, "api_key"),
            ("mistral", {}, "api_key"),
            ("vercel-ai-gateway", {}, "api_key"),
            ("openrouter", {}, "api_key"),
            ("voyage", {}, "api_key"),
            ("bedrock", {}, "region"),
            ("bedrock", {"profile": "dev", "api_key": "ignored"}, "region"),
        ],
    )
    def test_missing_settings(self, workspace, tmp_path, provider, options, field):
        factory = make_factory(
            workspace, tmp_path, embedder_provider=provider, providers={provider: ProviderOptions(**options)}
        )

        with pytest.raises(ConfigurationError, match="configuration missing for embedder creation") as excinfo:
            factory.create_embedder()

        assert excinfo.value.field == field
        assert excinfo.value.provider == provider

    def test_unknown_provider(self, workspace, tmp_path):
        factory = make_factory(workspace, tmp_path, embedder_provider="cohere-direct")

        with pytest.raises(ConfigurationError, match="Invalid embedder type configured: cohere-direct"):
            factory.create_embedder()

    def test_model_and_routing_passed_through(self, workspace, tmp_path):
        factory = make_factory(
            workspace,
            tmp_path,
            embedder_provider="openrouter",
            model_id="qwen/qwen3-embedding-8b",
            providers={"openrouter": ProviderOptions(api_key="k", specific_provider="nebius")},
        )

        embedder = factory.create_embedder()

        assert embedder.model_id == "qwen/qwen3-embedding-8b"
        assert embedder.specific_provider == "nebius"

    def test_bedrock_region_and_profile_passed_through(self, workspace, tmp_path):
        factory = make_factory(
            workspace,
            tmp_path,
            embedder_provider="bedrock",
            model_id="cohere.embed-english-v3",
            providers={"bedrock": ProviderOptions(region="eu-west-1", profile="indexer")},
        )

        embedder = factory.create_embedder()

        assert (embedder.region, embedder.profile, embedder.model_id) == (
            "eu-west-1",
            "indexer",
            "cohere.embed-english-v3",
        )
        assert factory.resolve_vector_size() == 1024


class TestValidateEmbedder:
    async def test_passes_result_through(self, workspace, tmp_path):
        embedder = MagicMock()
        embedder.validate_configuration = AsyncMock(return_value=ValidationResult(valid=True))

        result = await make_factory(workspace, tmp_path).validate_embedder(embedder)

        assert result.valid is True

    async def test_exception_becomes_invalid(self, workspace, tmp_path):
        embedder = MagicMock()
        embedder.validate_configuration = AsyncMock(side_effect=RuntimeError("socket closed"))

        result = await make_factory(workspace, tmp_path).validate_embedder(embedder)

        assert result.valid is False
        assert result.error == "socket closed"


class TestResolveVectorSize:
    """Tests for picking the store's vector width."""

    def test_profile_dimension_wins(self, workspace, tmp_path):
        factory = make_factory(workspace, tmp_path, model_dimension=42)

        assert factory.resolve_vector_size() == 384

    def test_manual_dimension_for_unknown_model(self, workspace, tmp_path):
        factory = make_factory(
            workspace, tmp_path, embedder_provider="openai-compatible", model_id="bge-m3", model_dimension=1024
        )

        assert factory.resolve_vector_size() == 1024

    @pytest.mark.parametrize("dimension", [None, 0, -5])
    def test_openai_compatible_without_dimension(self, workspace, tmp_path, dimension):
        factory = make_factory(
            workspace, tmp_path, embedder_provider="openai-compatible", model_id="bge-m3", model_dimension=dimension
        )

        with pytest.raises(ConfigurationError, match="Set model_dimension"):
            factory.resolve_vector_size()

    def test_other_provider_unknown_model(self, workspace, tmp_path):
        factory = make_factory(workspace, tmp_path, embedder_provider="ollama", model_id="custom")

        with pytest.raises(ConfigurationError, match="Check the model profiles"):
            factory.resolve_vector_size()


class TestCreateVectorStore:
    def test_lancedb(self, workspace, tmp_path):
        factory = make_factory(workspace, tmp_path)

        store = factory.create_vector_store()

        assert isinstance(store, LanceDBVectorStore)
        assert isinstance(store.driver, LanceDBDriver)
        assert store.vector_size == 384
        assert store.db_path.parent == tmp_path / "storage" / "lancedb"

    def test_lancedb_directory_override(self, workspace, tmp_path):
        factory = make_factory(workspace, tmp_path, lancedb_directory=str(tmp_path / "elsewhere"))

        assert factory.create_vector_store().db_path.parent == tmp_path / "elsewhere"

    def test_qdrant(self, workspace, tmp_path):
        factory = make_factory(
            workspace, tmp_path, vector_store_provider="qdrant", qdrant_url="http://localhost:6333"
        )

        store = factory.create_vector_store()

        assert isinstance(store, QdrantVectorStore)
        assert store.vector_size == 384

    def test_qdrant_requires_url(self, workspace, tmp_path):
        factory = make_factory(workspace, tmp_path, vector_store_provider="qdrant")

        with pytest.raises(ConfigurationError, match="Qdrant URL missing"):
            factory.create_vector_store()


class TestCreateServices:
    def test_wires_everything(self, workspace, tmp_path):
        services = make_factory(workspace, tmp_path).create_services()

        assert isinstance(services, CodeIndexServices)
        assert services.scanner.vector_store is services.vector_store
        assert services.file_watcher.embedder is services.embedder
        assert services.search.vector_store is services.vector_store
        assert services.cache.cache_path.parent == tmp_path / "storage" / "cache"

    def test_search_threshold_from_model_profile(self, workspace, tmp_path):
        services = make_factory(workspace, tmp_path).create_services()

        assert services.search.min_score == pytest.approx(0.4)

    def test_configured_threshold_wins(self, workspace, tmp_path):
        services = make_factory(workspace, tmp_path, search_min_score=0.1).create_services()

        assert services.search.min_score == pytest.approx(0.1)

    def test_not_configured(self, workspace, tmp_path):
        factory = make_factory(workspace, tmp_path, embedder_provider="openai")

        with pytest.raises(ConfigurationError, match="not configured"):
            factory.create_services()
