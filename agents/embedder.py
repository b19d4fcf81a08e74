"""
Embedding Agent
---------------
Attaches an embedding vector to every recent English ContentItem that lacks one.

  - window : published within CONTENT_LOOKBACK_DAYS
  - cap    : EMBEDDING_FETCH_LIMIT items per run
  - batch  : EMBEDDING_BATCH_SIZE texts per external call

A failed batch leaves its items without an embedding (picked up again on the
next run); there is no retry within a run.

Input  : English ContentItems with no embedding
Output : {"processed", "embedded"}
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from agents.base import Agent
from config.settings import settings
from db.repository import PipelineStore
from models.schemas import ContentItem, FixedDimensionVector
from services.embeddings import EmbeddingService, preprocess_text
from services.errors import EmbeddingServiceError

logger = logging.getLogger(__name__)


def validate_batch(
    vectors: List[List[float]], expected: int, dimension: Optional[int] = None
) -> List[FixedDimensionVector]:
    """Typed vectors for a batch response, or EmbeddingServiceError."""
    if len(vectors) != expected:
        raise EmbeddingServiceError(f"Expected {expected} embeddings, got {len(vectors)}")
    try:
        typed = [FixedDimensionVector.from_sequence(v, dimension) for v in vectors]
    except ValueError as e:
        raise EmbeddingServiceError(f"Malformed embedding: {e}") from e
    dims = {v.dimension for v in typed}
    if len(dims) > 1:
        raise EmbeddingServiceError(f"Inconsistent embedding dimensions in batch: {sorted(dims)}")
    return typed


class EmbeddingAgent(Agent):
    """
    Parameters
    ----------
    service : EmbeddingService
        External embedding provider.
    lookback_days : int
        Only items published within this many days are embedded.
    batch_size : int
        Texts per embedding call.
    fetch_limit : int
        Safety cap on items per run.
    dimension : int, optional
        Reject batches whose vectors are not this long.
    """

    display_name = "Embedding Generation"

    def __init__(
        self,
        store: PipelineStore,
        service: EmbeddingService,
        lookback_days: int = settings.CONTENT_LOOKBACK_DAYS,
        batch_size: int = settings.EMBEDDING_BATCH_SIZE,
        fetch_limit: int = settings.EMBEDDING_FETCH_LIMIT,
        max_tokens: int = settings.EMBEDDING_MAX_TOKENS,
        dimension: Optional[int] = settings.EMBEDDING_DIMENSION,
    ):
        super().__init__(name="EmbeddingAgent", store=store)
        self.service = service
        self.lookback_days = lookback_days
        self.batch_size = batch_size
        self.fetch_limit = fetch_limit
        self.max_tokens = max_tokens
        self.dimension = dimension

    def run(self) -> Dict[str, int]:
        self.logger.info(f"🧠 Starting embedding generation with {self.service!r}...")
        cutoff = datetime.utcnow() - timedelta(days=self.lookback_days)
        items = self.store.list_unembedded_content(cutoff, self.fetch_limit)
        self.logger.info(f"  Found {len(items)} items to embed")

        processed = 0
        embedded = 0

        for start in range(0, len(items), self.batch_size):
            batch = items[start:start + self.batch_size]
            embedded += self._embed_batch(batch, start)
            processed += len(batch)
            self.logger.info(f"  Processed {processed}/{len(items)} items")

        self.logger.info(f"✅ Embedding complete: {embedded}/{processed} items embedded")
        return {"processed": processed, "embedded": embedded}

    def _embed_batch(self, batch: List[ContentItem], offset: int) -> int:
        texts = [preprocess_text(item.body_text, self.max_tokens) for item in batch]
        try:
            vectors = validate_batch(self.service.embed(texts), len(batch), self.dimension)
        except EmbeddingServiceError as e:
            self.logger.error(f"  ❌ Error embedding batch at {offset}: {e}")
            for item in batch:
                self._store_vector(item, None)
            return 0

        stored = 0
        for item, vector in zip(batch, vectors):
            if self._store_vector(item, vector):
                stored += 1
        return stored

    def _store_vector(self, item: ContentItem, vector: Optional[FixedDimensionVector]) -> bool:
        try:
            self.store.set_embedding(item.content_id, vector)
            return vector is not None
        except Exception as e:
            self.logger.error(f"  ❌ Error saving embedding for item {item.content_id}: {e}")
            return False
