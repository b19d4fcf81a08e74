"""
Shared fixtures: an in-memory store and deterministic stand-ins for the
external embedding / text-generation services.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence

import pytest

from db.database import create_db_engine
from db.repository import SQLAlchemyStore
from models.schemas import (
    BehaviorCluster, ContentItem, FixedDimensionVector, Language, Persona,
    Platform, PlatformFractionMap, RawContentRecord,
)
from services.embeddings import EmbeddingService
from services.errors import EmbeddingServiceError, LLMClientError
from services.llm import LLMResponse


# ─── Fakes ───────────────────────────────────────────────────────────────────

class FakeEmbeddingService(EmbeddingService):
    """Deterministic vectors; optionally fails chosen calls (1-based)."""

    model_name = "fake-embedding"

    def __init__(
        self,
        vector_fn: Optional[Callable[[str], List[float]]] = None,
        fail_calls: Sequence[int] = (),
    ):
        self.vector_fn = vector_fn or (lambda text: [1.0, 0.0, 0.0])
        self.fail_calls = set(fail_calls)
        self.calls: List[List[str]] = []

    def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if len(self.calls) in self.fail_calls:
            raise EmbeddingServiceError("simulated outage")
        return [self.vector_fn(t) for t in texts]


class FakeLLMClient:
    """Returns canned replies in order; an Exception instance is raised instead."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts: List[str] = []

    def generate(self, prompt, system_prompt=None, json_mode=False, max_tokens=None):
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else LLMClientError("no reply queued")
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model="fake-llm")


# ─── Store ───────────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    return create_db_engine("sqlite://")


@pytest.fixture
def store(engine):
    return SQLAlchemyStore.from_engine(engine)


# ─── Builders ────────────────────────────────────────────────────────────────

@pytest.fixture
def add_items(store):
    """
    add_items(texts, vector=None, days_ago=1, language=EN, platform=REDDIT) -> [ContentItem]

    `vector` may be a list (shared) or a callable(index) -> list.
    """
    counter = {"n": 0}

    def _add(
        texts: Sequence[str],
        vector=None,
        days_ago: float = 1,
        language: Language = Language.EN,
        platform: Platform = Platform.REDDIT,
    ) -> List[ContentItem]:
        before = {i.content_id for i in store.list_content_by_language(Language.UNKNOWN)}
        for text in texts:
            counter["n"] += 1
            store.add_content(RawContentRecord(
                source_platform=platform,
                source_id=f"src-{counter['n']}",
                body_text=text,
                published_at=datetime.utcnow() - timedelta(days=days_ago),
            ))
        new = [
            i for i in store.list_content_by_language(Language.UNKNOWN)
            if i.content_id not in before
        ]
        for idx, item in enumerate(new):
            if language != Language.UNKNOWN:
                store.set_language(item.content_id, language)
            if vector is not None:
                values = vector(idx) if callable(vector) else vector
                store.set_embedding(item.content_id, FixedDimensionVector.from_sequence(values))
        return [store.get_content(i.content_id) for i in new]

    return _add


@pytest.fixture
def make_cluster(store):
    def _make(
        label: str = "Ghosting After First Date",
        summary: str = "People getting ghosted after a first date.",
        top_phrases: Sequence[str] = ("ghosting after", "first date"),
        total: int = 30,
        last_7d: int = 25,
        growth: float = 1.8,
        breakdown=None,
    ) -> BehaviorCluster:
        return store.create_cluster(BehaviorCluster(
            cluster_id=None,
            label=label,
            summary=summary,
            top_phrases=list(top_phrases),
            content_count_total=total,
            content_count_last_7d=last_7d,
            source_breakdown=breakdown or PlatformFractionMap.from_counts({"reddit": 3, "youtube": 1}),
            growth_score=growth,
        ))

    return _make


@pytest.fixture
def make_persona(store):
    def _make(name: str, keywords=(), pain_points=(), typical_behaviors=()) -> Persona:
        return store.upsert_persona(Persona(
            persona_id=None,
            name=name,
            keywords=list(keywords),
            pain_points=list(pain_points),
            typical_behaviors=list(typical_behaviors),
        ))

    return _make


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddingService()


@pytest.fixture
def make_embedder():
    def _make(vector_fn=None, fail_calls=()) -> FakeEmbeddingService:
        return FakeEmbeddingService(vector_fn=vector_fn, fail_calls=fail_calls)

    return _make


@pytest.fixture
def make_llm():
    def _make(*replies) -> FakeLLMClient:
        return FakeLLMClient(*replies)

    return _make
