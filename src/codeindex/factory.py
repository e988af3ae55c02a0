"""Composition root: builds embedders, vector stores, scanners and watchers from config."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from codeindex.config import VECTOR_STORE_LANCEDB, CodeIndexConfig
from codeindex.dependencies import DependencyManager, ProgressCallback
from codeindex.embedders import (
    BedrockEmbedder,
    EmbedderProvider,
    GeminiEmbedder,
    MistralEmbedder,
    OllamaEmbedder,
    OpenAICompatibleEmbedder,
    OpenAIEmbedder,
    OpenRouterEmbedder,
    SentenceTransformerEmbedder,
    VercelAiGatewayEmbedder,
    VoyageEmbedder,
    get_model_dimension,
    get_model_score_threshold,
)
from codeindex.errors import ConfigurationError
from codeindex.processors import DirectoryScanner, FileHashCache, FileWatcher, IgnoreFilter
from codeindex.protocols import EmbeddingProvider, ValidationResult, VectorStore
from codeindex.search import CodeSearchService
from codeindex.storage import LanceDBDriver, LanceDBVectorStore, QdrantVectorStore

logger = logging.getLogger(__name__)


@dataclass
class CodeIndexServices:
    """Everything needed to index and search one workspace."""

    embedder: EmbeddingProvider
    vector_store: VectorStore
    scanner: DirectoryScanner
    file_watcher: FileWatcher
    search: CodeSearchService
    cache: FileHashCache
    ignore_filter: IgnoreFilter


class CodeIndexServiceFactory:
    """Builds and wires the indexing services for one workspace."""

    def __init__(
        self,
        config: CodeIndexConfig,
        workspace_path: Path | str,
        progress: Optional[ProgressCallback] = None,
    ):
        self.config = config
        self.workspace_path = str(Path(workspace_path).resolve())
        self.progress = progress
        self._dependency_manager: Optional[DependencyManager] = None

    @property
    def dependency_manager(self) -> DependencyManager:
        if self._dependency_manager is None:
            self._dependency_manager = DependencyManager(self.config.storage_path, progress=self.progress)
        return self._dependency_manager

    def _missing(self, provider: str, field: str, label: str) -> ConfigurationError:
        return ConfigurationError(
            f"{label} configuration missing for embedder creation: {field} is required",
            provider=provider,
            field=field,
        )

    def create_embedder(self) -> EmbeddingProvider:
        """Build the embedder selected by ``embedder_provider``.

        Raises:
            ConfigurationError: the provider is unknown or a required setting is missing
        """
        config = self.config
        provider = config.embedder_provider
        options = config.options()

        if provider == EmbedderProvider.OPENAI:
            if not options.api_key:
                raise self._missing(provider, "api_key", "OpenAI")
            return OpenAIEmbedder(options.api_key, config.model_id)
        elif provider == EmbedderProvider.OLLAMA:
            if not options.base_url:
                raise self._missing(provider, "base_url", "Ollama")
            return OllamaEmbedder(options.base_url, config.model_id)
        elif provider == EmbedderProvider.OPENAI_COMPATIBLE:
            if not options.base_url or not options.api_key:
                raise self._missing(
                    provider, "base_url" if not options.base_url else "api_key", "OpenAI-compatible"
                )
            return OpenAICompatibleEmbedder(options.base_url, options.api_key, config.model_id)
        elif provider == EmbedderProvider.GEMINI:
            if not options.api_key:
                raise self._missing(provider, "api_key", "Gemini")
            return GeminiEmbedder(options.api_key, config.model_id)
        elif provider == EmbedderProvider.MISTRAL:
            if not options.api_key:
                raise self._missing(provider, "api_key", "Mistral")
            return MistralEmbedder(options.api_key, config.model_id)
        elif provider == EmbedderProvider.VERCEL_AI_GATEWAY:
            if not options.api_key:
                raise self._missing(provider, "api_key", "Vercel AI Gateway")
            return VercelAiGatewayEmbedder(options.api_key, config.model_id)
        elif provider == EmbedderProvider.BEDROCK:
            # Only the region is required; credentials come from the AWS chain.
            if not options.region:
                raise self._missing(provider, "region", "Bedrock")
            return BedrockEmbedder(options.region, options.profile, config.model_id)
        elif provider == EmbedderProvider.OPENROUTER:
            if not options.api_key:
                raise self._missing(provider, "api_key", "OpenRouter")
            return OpenRouterEmbedder(
                options.api_key, config.model_id, specific_provider=options.specific_provider
            )
        elif provider == EmbedderProvider.VOYAGE:
            if not options.api_key:
                raise self._missing(provider, "api_key", "Voyage AI")
            return VoyageEmbedder(options.api_key, config.model_id)
        elif provider == EmbedderProvider.SENTENCE_TRANSFORMERS:
            return SentenceTransformerEmbedder(config.model_id)

        raise ConfigurationError(f"Invalid embedder type configured: {provider}", provider=provider)

    async def validate_embedder(self, embedder: EmbeddingProvider) -> ValidationResult:
        """Run the embedder's own check; exceptions become an invalid result."""
        try:
            return await embedder.validate_configuration()
        except Exception as e:
            logger.error(f"Embedder validation failed: {e}")
            return ValidationResult(valid=False, error=str(e) or "Embedder configuration error")

    def resolve_vector_size(self) -> int:
        """Dimension from the model profile, else the configured override.

        Raises:
            ConfigurationError: neither yields a positive integer
        """
        provider = self.config.embedder_provider
        model_id = self.config.resolve_model_id()

        vector_size = get_model_dimension(provider, model_id)
        manual = self.config.model_dimension
        if not vector_size and isinstance(manual, int) and manual > 0:
            vector_size = manual

        if vector_size is None or vector_size <= 0:
            if provider == EmbedderProvider.OPENAI_COMPATIBLE:
                raise ConfigurationError(
                    f"Could not determine vector dimension for model '{model_id}' with provider "
                    f"'{provider}'. Set model_dimension in the configuration.",
                    provider=provider,
                    field="model_dimension",
                )
            raise ConfigurationError(
                f"Could not determine vector dimension for model '{model_id}' with provider "
                f"'{provider}'. Check the model profiles or configuration.",
                provider=provider,
                field="model_dimension",
            )
        return vector_size

    def create_vector_store(self) -> VectorStore:
        vector_size = self.resolve_vector_size()

        if self.config.vector_store_provider == VECTOR_STORE_LANCEDB:
            return LanceDBVectorStore(
                self.workspace_path,
                vector_size,
                self.config.lancedb_path,
                LanceDBDriver(self.dependency_manager),
            )

        if not self.config.qdrant_url:
            raise ConfigurationError(
                "Qdrant URL missing for vector store creation", provider="qdrant", field="qdrant_url"
            )
        return QdrantVectorStore(
            self.workspace_path, self.config.qdrant_url, vector_size, self.config.qdrant_api_key
        )

    def create_cache(self) -> FileHashCache:
        return FileHashCache.for_workspace(self.config.storage_path, self.workspace_path)

    def create_ignore_filter(self) -> IgnoreFilter:
        return IgnoreFilter.from_workspace(self.workspace_path)

    def create_directory_scanner(
        self,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        cache: FileHashCache,
        ignore_filter: IgnoreFilter,
    ) -> DirectoryScanner:
        return DirectoryScanner(
            embedder,
            vector_store,
            cache,
            ignore_filter,
            batch_size=self.config.embedding_batch_size,
            max_batch_retries=self.config.scanner_max_batch_retries,
        )

    def create_file_watcher(
        self,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        cache: FileHashCache,
        ignore_filter: IgnoreFilter,
    ) -> FileWatcher:
        return FileWatcher(
            self.workspace_path,
            embedder,
            vector_store,
            cache,
            ignore_filter,
            batch_size=self.config.embedding_batch_size,
            max_batch_retries=self.config.scanner_max_batch_retries,
        )

    def create_search_service(
        self,
        embedder: EmbeddingProvider,
        vector_store: VectorStore,
        cache: Optional[FileHashCache] = None,
    ) -> CodeSearchService:
        """Search with the configured threshold, else the model's own, else the store default."""
        min_score = self.config.search_min_score
        if min_score is None:
            min_score = get_model_score_threshold(
                self.config.embedder_provider, self.config.resolve_model_id()
            )
        return CodeSearchService(
            embedder,
            vector_store,
            min_score=min_score,
            max_results=self.config.search_max_results,
            cache=cache,
        )

    def create_services(self) -> CodeIndexServices:
        """Build every service.

        Raises:
            ConfigurationError: indexing is disabled or not fully configured
        """
        if not self.config.is_configured:
            raise ConfigurationError(
                "Code indexing is not configured. Set an embedder provider and its credentials."
            )

        embedder = self.create_embedder()
        vector_store = self.create_vector_store()
        cache = self.create_cache()
        ignore_filter = self.create_ignore_filter()
        return CodeIndexServices(
            embedder=embedder,
            vector_store=vector_store,
            scanner=self.create_directory_scanner(embedder, vector_store, cache, ignore_filter),
            file_watcher=self.create_file_watcher(embedder, vector_store, cache, ignore_filter),
            search=self.create_search_service(embedder, vector_store, cache),
            cache=cache,
            ignore_filter=ignore_filter,
        )
