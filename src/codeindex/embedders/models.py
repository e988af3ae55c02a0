"""Embedding model profiles: dimensions, defaults and query prefixes."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class EmbedderProvider(str, Enum):
    """Supported embedding providers."""

    OPENAI = "openai"
    OLLAMA = "ollama"
    OPENAI_COMPATIBLE = "openai-compatible"
    GEMINI = "gemini"
    MISTRAL = "mistral"
    VERCEL_AI_GATEWAY = "vercel-ai-gateway"
    OPENROUTER = "openrouter"
    VOYAGE = "voyage"
    BEDROCK = "bedrock"
    SENTENCE_TRANSFORMERS = "sentence-transformers"


@dataclass(frozen=True)
class ModelProfile:
    dimension: int
    score_threshold: Optional[float] = None
    query_prefix: Optional[str] = None


NOMIC_CODE_QUERY_PREFIX = "Represent this query for searching relevant code: "

_ROUTED_OPENAI_PROFILES = {
    "openai/text-embedding-3-small": ModelProfile(1536, 0.4),
    "openai/text-embedding-3-large": ModelProfile(3072, 0.4),
    "openai/text-embedding-ada-002": ModelProfile(1536, 0.4),
    "google/gemini-embedding-001": ModelProfile(3072, 0.4),
    "mistral/codestral-embed": ModelProfile(1536, 0.4),
    "qwen/qwen3-embedding-8b": ModelProfile(4096, 0.4),
}

MODEL_PROFILES: dict[EmbedderProvider, dict[str, ModelProfile]] = {
    EmbedderProvider.OPENAI: {
        "text-embedding-3-small": ModelProfile(1536, 0.4),
        "text-embedding-3-large": ModelProfile(3072, 0.4),
        "text-embedding-ada-002": ModelProfile(1536, 0.4),
    },
    EmbedderProvider.OLLAMA: {
        "nomic-embed-text": ModelProfile(768, 0.4),
        "nomic-embed-code": ModelProfile(3584, 0.15, NOMIC_CODE_QUERY_PREFIX),
        "mxbai-embed-large": ModelProfile(1024, 0.4),
        "all-minilm": ModelProfile(384, 0.4),
    },
    # Dimensions of arbitrary compatible endpoints come from configuration.
    EmbedderProvider.OPENAI_COMPATIBLE: {
        "text-embedding-3-small": ModelProfile(1536, 0.4),
        "text-embedding-3-large": ModelProfile(3072, 0.4),
        "text-embedding-ada-002": ModelProfile(1536, 0.4),
        "nomic-embed-code": ModelProfile(3584, 0.15, NOMIC_CODE_QUERY_PREFIX),
    },
    EmbedderProvider.GEMINI: {
        "text-embedding-004": ModelProfile(768, 0.4),
        "gemini-embedding-001": ModelProfile(3072, 0.4),
    },
    EmbedderProvider.MISTRAL: {
        "codestral-embed-2505": ModelProfile(1536, 0.4),
    },
    EmbedderProvider.VERCEL_AI_GATEWAY: dict(_ROUTED_OPENAI_PROFILES),
    EmbedderProvider.OPENROUTER: dict(_ROUTED_OPENAI_PROFILES),
    EmbedderProvider.VOYAGE: {
        "voyage-code-3": ModelProfile(1024, 0.4),
        "voyage-4-large": ModelProfile(1024, 0.4),
        "voyage-4": ModelProfile(1024, 0.4),
        "voyage-4-lite": ModelProfile(1024, 0.4),
        "voyage-finance-2": ModelProfile(1024, 0.4),
        "voyage-law-2": ModelProfile(1024, 0.4),
    },
    EmbedderProvider.BEDROCK: {
        "amazon.titan-embed-text-v2:0": ModelProfile(1024, 0.4),
        "amazon.titan-embed-text-v1": ModelProfile(1536, 0.4),
        "cohere.embed-english-v3": ModelProfile(1024, 0.4),
        "cohere.embed-multilingual-v3": ModelProfile(1024, 0.4),
    },
    EmbedderProvider.SENTENCE_TRANSFORMERS: {
        "all-MiniLM-L6-v2": ModelProfile(384, 0.4),
        "all-mpnet-base-v2": ModelProfile(768, 0.4),
    },
}

DEFAULT_MODELS: dict[EmbedderProvider, str] = {
    EmbedderProvider.OPENAI: "text-embedding-3-small",
    EmbedderProvider.OLLAMA: "nomic-embed-text",
    EmbedderProvider.OPENAI_COMPATIBLE: "text-embedding-3-small",
    EmbedderProvider.GEMINI: "gemini-embedding-001",
    EmbedderProvider.MISTRAL: "codestral-embed-2505",
    EmbedderProvider.VERCEL_AI_GATEWAY: "openai/text-embedding-3-large",
    EmbedderProvider.OPENROUTER: "openai/text-embedding-3-large",
    EmbedderProvider.VOYAGE: "voyage-code-3",
    EmbedderProvider.BEDROCK: "amazon.titan-embed-text-v2:0",
    EmbedderProvider.SENTENCE_TRANSFORMERS: "all-MiniLM-L6-v2",
}


def _coerce(provider: EmbedderProvider | str) -> Optional[EmbedderProvider]:
    try:
        return EmbedderProvider(provider)
    except ValueError:
        return None


def get_model_profile(provider: EmbedderProvider | str, model_id: str) -> Optional[ModelProfile]:
    resolved = _coerce(provider)
    if resolved is None:
        return None
    return MODEL_PROFILES[resolved].get(model_id)


def get_model_dimension(provider: EmbedderProvider | str, model_id: str) -> Optional[int]:
    """Vector width for a known model, or None when the model is not profiled."""
    profile = get_model_profile(provider, model_id)
    return profile.dimension if profile else None


def get_model_score_threshold(provider: EmbedderProvider | str, model_id: str) -> Optional[float]:
    profile = get_model_profile(provider, model_id)
    return profile.score_threshold if profile else None


def get_model_query_prefix(provider: EmbedderProvider | str, model_id: str) -> Optional[str]:
    profile = get_model_profile(provider, model_id)
    return profile.query_prefix if profile else None


def get_default_model_id(provider: EmbedderProvider | str) -> str:
    """Default model for a provider; unknown providers fall back to OpenAI's."""
    resolved = _coerce(provider)
    if resolved is None:
        return DEFAULT_MODELS[EmbedderProvider.OPENAI]
    return DEFAULT_MODELS[resolved]
