"""Configuration for code indexing."""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from codeindex.constants import (
    BATCH_SEGMENT_THRESHOLD,
    DEFAULT_STORAGE_ROOT,
    LANCEDB_DIRECTORY_NAME,
    MAX_BATCH_RETRIES,
)
from codeindex.embedders.models import EmbedderProvider, get_default_model_id
from codeindex.embedders.ollama import DEFAULT_OLLAMA_URL
from codeindex.errors import ConfigurationError

logger = logging.getLogger(__name__)

VECTOR_STORE_LANCEDB = "lancedb"
VECTOR_STORE_QDRANT = "qdrant"

# provider -> (api key variable, base url variable)
PROVIDER_ENV_VARS: dict[str, tuple[Optional[str], Optional[str]]] = {
    EmbedderProvider.OPENAI.value: ("OPENAI_API_KEY", None),
    EmbedderProvider.OLLAMA.value: (None, "OLLAMA_BASE_URL"),
    EmbedderProvider.OPENAI_COMPATIBLE.value: (
        "CODEINDEX_OPENAI_COMPATIBLE_API_KEY",
        "CODEINDEX_OPENAI_COMPATIBLE_BASE_URL",
    ),
    EmbedderProvider.GEMINI.value: ("GEMINI_API_KEY", None),
    EmbedderProvider.MISTRAL.value: ("MISTRAL_API_KEY", None),
    EmbedderProvider.VERCEL_AI_GATEWAY.value: ("AI_GATEWAY_API_KEY", None),
    EmbedderProvider.OPENROUTER.value: ("OPENROUTER_API_KEY", None),
    EmbedderProvider.VOYAGE.value: ("VOYAGE_API_KEY", None),
}


@dataclass
class ProviderOptions:
    """Credentials and endpoint for one embedding provider."""

    api_key: Optional[str] = None
    base_url: Optional[str] = None
    specific_provider: Optional[str] = None  # OpenRouter upstream routing
    region: Optional[str] = None  # Bedrock
    profile: Optional[str] = None  # Bedrock, named AWS profile


def _optional_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value not in (None, "") else None


def _optional_float(value: Optional[str]) -> Optional[float]:
    return float(value) if value not in (None, "") else None


@dataclass
class CodeIndexConfig:
    """Configuration for the indexer, its embedder and its vector store."""

    enabled: bool = True
    embedder_provider: str = EmbedderProvider.SENTENCE_TRANSFORMERS.value
    model_id: Optional[str] = None
    model_dimension: Optional[int] = None
    vector_store_provider: str = VECTOR_STORE_LANCEDB
    qdrant_url: Optional[str] = None
    qdrant_api_key: Optional[str] = None
    storage_root: str = DEFAULT_STORAGE_ROOT
    lancedb_directory: Optional[str] = None
    embedding_batch_size: int = BATCH_SEGMENT_THRESHOLD
    scanner_max_batch_retries: int = MAX_BATCH_RETRIES
    search_min_score: Optional[float] = None
    search_max_results: Optional[int] = None
    providers: dict[str, ProviderOptions] = field(default_factory=dict)

    def options(self, provider: Optional[str] = None) -> ProviderOptions:
        """Options for ``provider`` (default: the configured embedder)."""
        return self.providers.get(provider or self.embedder_provider) or ProviderOptions()

    def resolve_model_id(self) -> str:
        return self.model_id or get_default_model_id(self.embedder_provider)

    @property
    def storage_path(self) -> Path:
        return Path(self.storage_root).expanduser()

    @property
    def lancedb_path(self) -> Path:
        if self.lancedb_directory:
            return Path(self.lancedb_directory).expanduser()
        return self.storage_path / LANCEDB_DIRECTORY_NAME

    @property
    def is_configured(self) -> bool:
        """True when the embedder and vector store have their required settings."""
        if not self.enabled:
            return False

        options = self.options()
        provider = self.embedder_provider
        if provider == EmbedderProvider.SENTENCE_TRANSFORMERS.value:
            embedder_ready = True
        elif provider == EmbedderProvider.OLLAMA.value:
            embedder_ready = bool(options.base_url)
        elif provider == EmbedderProvider.OPENAI_COMPATIBLE.value:
            embedder_ready = bool(options.base_url and options.api_key)
        elif provider == EmbedderProvider.BEDROCK.value:
            embedder_ready = bool(options.region)
        elif provider in PROVIDER_ENV_VARS:
            embedder_ready = bool(options.api_key)
        else:
            embedder_ready = False

        if self.vector_store_provider == VECTOR_STORE_LANCEDB:
            return embedder_ready
        return embedder_ready and bool(self.qdrant_url)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CodeIndexConfig":
        """Build a config from a mapping; unknown keys are ignored with a warning."""
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            values[key] = value

        raw_providers = values.pop("providers", None) or {}
        if not isinstance(raw_providers, dict):
            raise ConfigurationError("'providers' must be a mapping", field="providers")
        try:
            values["providers"] = {
                name: opts if isinstance(opts, ProviderOptions) else ProviderOptions(**opts)
                for name, opts in raw_providers.items()
            }
        except TypeError as e:
            raise ConfigurationError(f"Invalid provider options: {e}", field="providers") from e
        return cls(**values)

    @classmethod
    def from_file(cls, path: Path | str) -> "CodeIndexConfig":
        """Load config from a JSON file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Could not read config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a JSON object")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "CodeIndexConfig":
        """Create config from environment variables."""
        env = os.environ
        providers = {}
        for provider, (key_var, url_var) in PROVIDER_ENV_VARS.items():
            providers[provider] = ProviderOptions(
                api_key=env.get(key_var) if key_var else None,
                base_url=env.get(url_var) if url_var else None,
            )
        providers[EmbedderProvider.OLLAMA.value].base_url = env.get("OLLAMA_BASE_URL", DEFAULT_OLLAMA_URL)
        providers[EmbedderProvider.OPENROUTER.value].specific_provider = env.get(
            "OPENROUTER_SPECIFIC_PROVIDER"
        )
        providers[EmbedderProvider.BEDROCK.value] = ProviderOptions(
            region=env.get("AWS_REGION") or env.get("AWS_DEFAULT_REGION") or None,
            profile=env.get("AWS_PROFILE") or None,
        )

        try:
            return cls(
                enabled=env.get("CODEINDEX_ENABLED", "true").lower() not in ("0", "false", "no"),
                embedder_provider=env.get(
                    "CODEINDEX_EMBEDDER_PROVIDER", EmbedderProvider.SENTENCE_TRANSFORMERS.value
                ),
                model_id=env.get("CODEINDEX_MODEL_ID") or None,
                model_dimension=_optional_int(env.get("CODEINDEX_MODEL_DIMENSION")),
                vector_store_provider=env.get("CODEINDEX_VECTOR_STORE", VECTOR_STORE_LANCEDB),
                qdrant_url=env.get("CODEINDEX_QDRANT_URL") or None,
                qdrant_api_key=env.get("CODEINDEX_QDRANT_API_KEY") or None,
                storage_root=env.get("CODEINDEX_STORAGE_ROOT", DEFAULT_STORAGE_ROOT),
                lancedb_directory=env.get("CODEINDEX_LANCEDB_DIRECTORY") or None,
                embedding_batch_size=int(env.get("CODEINDEX_BATCH_SIZE", str(BATCH_SEGMENT_THRESHOLD))),
                scanner_max_batch_retries=int(
                    env.get("CODEINDEX_MAX_BATCH_RETRIES", str(MAX_BATCH_RETRIES))
                ),
                search_min_score=_optional_float(env.get("CODEINDEX_SEARCH_MIN_SCORE")),
                search_max_results=_optional_int(env.get("CODEINDEX_SEARCH_MAX_RESULTS")),
                providers=providers,
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting in environment: {e}") from e
