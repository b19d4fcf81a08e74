from .errors import ConfigurationError, EmbeddingServiceError, LLMClientError, LLMResponseError
from .embeddings import (
    EmbeddingService, OpenAIEmbeddingService, SentenceTransformerEmbeddingService,
    get_embedding_service, preprocess_text,
)
from .llm import LLMClient, LLMResponse, get_llm_client

__all__ = [
    "ConfigurationError", "EmbeddingServiceError", "LLMClientError", "LLMResponseError",
    "EmbeddingService", "OpenAIEmbeddingService", "SentenceTransformerEmbeddingService",
    "get_embedding_service", "preprocess_text",
    "LLMClient", "LLMResponse", "get_llm_client",
]
