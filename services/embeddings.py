"""
Embedding services.

The pipeline only depends on ``EmbeddingService.embed(texts)``: one vector per
input, order preserved, all vectors the same dimension. Two providers:

  - OpenAIEmbeddingService        (default, ``text-embedding-3-small``)
  - SentenceTransformerEmbeddingService  (local model, ``pip install .[local]``)
"""

import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import OpenAI, OpenAIError

from config.settings import settings
from services.errors import ConfigurationError, EmbeddingServiceError

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4

_URL_RE = re.compile(r"https?://\S+")
_WS_RE = re.compile(r"\s+")


def preprocess_text(text: str, max_tokens: int = settings.EMBEDDING_MAX_TOKENS) -> str:
    """Strip URLs, collapse whitespace, truncate to ~max_tokens (4 chars/token)."""
    processed = _URL_RE.sub("", text)
    processed = _WS_RE.sub(" ", processed).strip()
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(processed) > max_chars:
        processed = processed[:max_chars]
    return processed


class EmbeddingService(ABC):
    """Contract for an external embedding model."""

    model_name: str = "unknown"

    @abstractmethod
    def embed(self, texts: List[str]) -> List[List[float]]:
        raise NotImplementedError

    def embed_single(self, text: str) -> List[float]:
        vectors = self.embed([preprocess_text(text)])
        if not vectors:
            raise EmbeddingServiceError("Embedding service returned no vector")
        return vectors[0]

    def __repr__(self):
        return f"<{type(self).__name__}: {self.model_name}>"


class OpenAIEmbeddingService(EmbeddingService):
    """Embeddings via the OpenAI API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = settings.EMBEDDING_MODEL,
        client: Optional[OpenAI] = None,
    ):
        api_key = api_key or settings.OPENAI_API_KEY
        if client is None and not api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY environment variable is required for embedding generation"
            )
        self.model_name = model
        self._client = client or OpenAI(api_key=api_key)

    def embed(self, texts: List[str]) -> List[List[float]]:
        try:
            response = self._client.embeddings.create(model=self.model_name, input=texts)
        except OpenAIError as e:
            raise EmbeddingServiceError(f"OpenAI embedding error: {e}") from e

        data = sorted(response.data, key=lambda d: d.index)
        if len(data) != len(texts):
            raise EmbeddingServiceError(
                f"Expected {len(texts)} embeddings, got {len(data)}"
            )
        return [list(d.embedding) for d in data]


class SentenceTransformerEmbeddingService(EmbeddingService):
    """Local sentence-transformers model; no API key needed."""

    def __init__(self, model_name: str = settings.LOCAL_EMBEDDING_MODEL, batch_size: int = 64):
        from sentence_transformers import SentenceTransformer

        logger.info(f"Loading sentence-transformer: {model_name}")
        self.model_name = model_name
        self.batch_size = batch_size
        self._model = SentenceTransformer(model_name)
        logger.info("Embedding model loaded.")

    def embed(self, texts: List[str]) -> List[List[float]]:
        try:
            vectors = self._model.encode(
                texts, show_progress_bar=False, batch_size=self.batch_size
            )
        except Exception as e:
            raise EmbeddingServiceError(f"Local embedding error: {e}") from e
        return [v.tolist() for v in vectors]


def get_embedding_service(provider: Optional[str] = None) -> EmbeddingService:
    """Build the configured embedding provider. Raises ConfigurationError early."""
    provider = (provider or settings.EMBEDDING_PROVIDER).lower()
    if provider == "openai":
        return OpenAIEmbeddingService()
    if provider == "local":
        return SentenceTransformerEmbeddingService()
    raise ConfigurationError(f"Unknown embedding provider: {provider!r}")
