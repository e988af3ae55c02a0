"""Embedding providers for vector generation."""

from codeindex.embedders.base import HttpEmbedder, batch_by_tokens
from codeindex.embedders.bedrock import BedrockEmbedder
from codeindex.embedders.models import (
    EmbedderProvider,
    get_default_model_id,
    get_model_dimension,
    get_model_query_prefix,
    get_model_score_threshold,
)
from codeindex.embedders.ollama import OllamaEmbedder
from codeindex.embedders.openai_compatible import (
    GeminiEmbedder,
    MistralEmbedder,
    OpenAICompatibleEmbedder,
    OpenAIEmbedder,
    OpenRouterEmbedder,
    VercelAiGatewayEmbedder,
)
from codeindex.embedders.sentence_transformer import SentenceTransformerEmbedder
from codeindex.embedders.voyage import VoyageEmbedder

__all__ = [
    "BedrockEmbedder",
    "EmbedderProvider",
    "GeminiEmbedder",
    "HttpEmbedder",
    "MistralEmbedder",
    "OllamaEmbedder",
    "OpenAICompatibleEmbedder",
    "OpenAIEmbedder",
    "OpenRouterEmbedder",
    "SentenceTransformerEmbedder",
    "VercelAiGatewayEmbedder",
    "VoyageEmbedder",
    "batch_by_tokens",
    "get_default_model_id",
    "get_model_dimension",
    "get_model_query_prefix",
    "get_model_score_threshold",
]
