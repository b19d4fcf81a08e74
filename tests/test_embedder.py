"""
Embedding generation tests.
"""

from types import SimpleNamespace

import pytest

from agents.embedder import EmbeddingAgent, validate_batch
from config.settings import settings
from services.embeddings import OpenAIEmbeddingService, get_embedding_service, preprocess_text
from services.errors import ConfigurationError, EmbeddingServiceError
from models.schemas import Language


def _by_length(text):
    return [1.0, float(len(text)), 0.5]


class TestPreprocess:
    def test_strips_urls_and_collapses_whitespace(self):
        text = "check   this https://example.com/x?y=1 out\n\nnow"
        assert preprocess_text(text) == "check this out now"

    def test_truncates_to_token_budget(self):
        assert len(preprocess_text("a" * 5000, max_tokens=512)) == 2048


class TestValidateBatch:
    def test_count_mismatch_fails(self):
        with pytest.raises(EmbeddingServiceError):
            validate_batch([[1.0, 2.0]], expected=2)

    def test_inconsistent_dimensions_fail(self):
        with pytest.raises(EmbeddingServiceError):
            validate_batch([[1.0, 2.0], [1.0, 2.0, 3.0]], expected=2)

    def test_configured_dimension_enforced(self):
        with pytest.raises(EmbeddingServiceError):
            validate_batch([[1.0, 2.0]], expected=1, dimension=3)

    def test_non_finite_values_fail(self):
        with pytest.raises(EmbeddingServiceError):
            validate_batch([[1.0, float("nan")]], expected=1)


class TestEmbeddingAgent:
    def test_embeds_recent_english_items(self, store, add_items, make_embedder):
        items = add_items(["first post about dating", "second, longer post about dating"])
        service = make_embedder(vector_fn=_by_length)

        result = EmbeddingAgent(store, service).run()

        assert result == {"processed": 2, "embedded": 2}
        for item in items:
            stored = store.get_content(item.content_id)
            assert stored.embedding.to_list() == _by_length(item.body_text)

    def test_failed_batch_is_skipped_and_run_continues(self, store, add_items, make_embedder):
        add_items([f"post number {i} about dating" for i in range(5)])
        service = make_embedder(fail_calls=[2])

        result = EmbeddingAgent(store, service, batch_size=2).run()

        assert len(service.calls) == 3
        assert result == {"processed": 5, "embedded": 3}
        embedded = [i for i in store.list_content_by_language(Language.EN) if i.embedding]
        assert len(embedded) == 3

    def test_failed_items_are_retried_next_run(self, store, add_items, make_embedder):
        add_items(["one post about dating", "another post about dating"])
        EmbeddingAgent(store, make_embedder(fail_calls=[1])).run()

        result = EmbeddingAgent(store, make_embedder()).run()
        assert result["embedded"] == 2

    def test_old_and_unclean_items_are_ignored(self, store, add_items, make_embedder):
        add_items(["an old post about dating"], days_ago=45)
        add_items(["an uncleaned post about dating"], language=Language.UNKNOWN)
        result = EmbeddingAgent(store, make_embedder()).run()
        assert result == {"processed": 0, "embedded": 0}

    def test_dimension_mismatch_fails_batch(self, store, add_items, make_embedder):
        add_items(["a post about dating"])
        agent = EmbeddingAgent(store, make_embedder(), dimension=8)
        assert agent.run() == {"processed": 1, "embedded": 0}

    def test_fetch_limit_caps_run(self, store, add_items, make_embedder):
        add_items([f"post {i} about dating" for i in range(4)])
        result = EmbeddingAgent(store, make_embedder(), fetch_limit=3).run()
        assert result["processed"] == 3


class TestEmbeddingServices:
    def test_missing_api_key_raises_at_construction(self, monkeypatch):
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        with pytest.raises(ConfigurationError):
            OpenAIEmbeddingService()

    def test_unknown_provider_raises(self):
        with pytest.raises(ConfigurationError):
            get_embedding_service("nope")

    def test_openai_response_reordered_by_index(self):
        response = SimpleNamespace(data=[
            SimpleNamespace(index=1, embedding=[0.0, 1.0]),
            SimpleNamespace(index=0, embedding=[1.0, 0.0]),
        ])
        client = SimpleNamespace(embeddings=SimpleNamespace(create=lambda **kw: response))
        service = OpenAIEmbeddingService(client=client)
        assert service.embed(["a", "b"]) == [[1.0, 0.0], [0.0, 1.0]]

    def test_embed_single(self, make_embedder):
        assert make_embedder().embed_single("hello") == [1.0, 0.0, 0.0]
