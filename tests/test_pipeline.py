"""
End-to-end pipeline tests with deterministic external services.
Run with: python -m pytest tests/ -v
"""

import pytest

import main as cli
from agents.base import Agent, Orchestrator
from config.settings import settings
from models.schemas import Language, OpportunityStatus, Severity
from services.errors import ConfigurationError
from utils.pipeline import STAGE_NAMES, build_stages, run_pipeline

POST = "I was ghosting after the first date and it feels awful"


@pytest.fixture
def seeded(store, add_items, make_persona):
    add_items([POST] * 25, language=Language.UNKNOWN, days_ago=1)
    return make_persona(
        "The Ghosted",
        keywords=["ghosting", "first date"],
        pain_points=["ghosting after first date"],
        typical_behaviors=["ghosting"],
    )


class TestFullPipeline:
    def test_single_trend_becomes_one_opportunity(self, store, seeded, make_embedder):
        result, summary = run_pipeline(store, embedding_service=make_embedder(), llm_client=None)

        assert result.success, summary
        assert [s.details for s in result.stages][:3] == [
            {"processed": 25, "kept": 25, "filtered": 0},
            {"processed": 25, "embedded": 25},
            {"clusters_created": 1, "items_assigned": 25},
        ]

        [cluster] = store.list_clusters()
        assert cluster.content_count_total == 25
        assert cluster.content_count_last_7d == 25
        assert cluster.growth_score == pytest.approx(4.29)
        assert cluster.top_phrases

        [link] = store.list_persona_links(cluster.cluster_id)
        assert link.persona_id == seeded.persona_id

        [card] = store.list_opportunities()
        assert card.status == OpportunityStatus.NEW
        assert card.severity == Severity.CRITICAL
        assert card.cluster_ids == [cluster.cluster_id]
        assert card.persona_ids == [seeded.persona_id]

    def test_second_run_updates_without_new_clusters(self, store, seeded, make_embedder):
        run_pipeline(store, embedding_service=make_embedder(), llm_client=None)
        result, _ = run_pipeline(store, embedding_service=make_embedder(), llm_client=None)

        details = {s.name: s.details for s in result.stages}
        assert details["Clustering"]["clusters_created"] == 0
        assert details["Opportunity Generation"] == {"created": 0, "updated": 1}
        assert len(store.list_clusters()) == 1

    def test_failed_stage_does_not_stop_later_stages(self, store, seeded, make_embedder):
        broken = make_embedder(vector_fn=lambda text: 1 / 0)
        result, summary = run_pipeline(store, embedding_service=broken, llm_client=None)

        assert not result.success
        assert [s.name for s in result.failed_stages] == ["Embedding Generation"]
        assert len(result.stages) == len(STAGE_NAMES)
        assert "❌" in summary and "Errors:" in summary

    def test_summary_lists_every_stage(self, store, seeded, make_embedder):
        _, summary = run_pipeline(store, embedding_service=make_embedder(), llm_client=None)
        for name in ("Content Cleaning", "Embedding Generation", "Clustering",
                     "Cluster Labeling", "Persona Mapping", "Opportunity Generation"):
            assert name in summary
        assert "6/6 steps succeeded" in summary


class TestSetup:
    def test_missing_key_fails_before_any_work(self, store, seeded, monkeypatch):
        monkeypatch.setattr(settings, "EMBEDDING_PROVIDER", "openai")
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        with pytest.raises(ConfigurationError):
            build_stages(store)
        assert len(store.list_content_by_language(Language.UNKNOWN)) == 25

    def test_cli_exits_2_on_configuration_error(self, store, seeded, monkeypatch):
        monkeypatch.setattr(settings, "EMBEDDING_PROVIDER", "openai")
        monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
        monkeypatch.setattr(cli, "get_store", lambda: store)
        assert cli.main(["pipeline"]) == cli.EXIT_CONFIG_ERROR

    def test_cli_runs_single_stage(self, store, seeded, monkeypatch):
        monkeypatch.setattr(cli, "get_store", lambda: store)
        assert cli.main(["clean"]) == 0
        assert len(store.list_content_by_language(Language.EN)) == 25


class TestOrchestrator:
    class Boom(Agent):
        display_name = "Boom"

        def run(self):
            raise ValueError("nope")

    class Fine(Agent):
        display_name = "Fine"

        def run(self):
            return {"ok": 1}

    def test_stop_on_failure(self, store):
        orch = Orchestrator([self.Boom("Boom", store), self.Fine("Fine", store)], stop_on_failure=True)
        results = orch.execute()
        assert len(results) == 1
        assert not orch.success

    def test_continues_by_default(self, store):
        orch = Orchestrator([self.Boom("Boom", store), self.Fine("Fine", store)])
        results = orch.execute()
        assert [r.success for r in results] == [False, True]
        assert "Boom: nope" in orch.summary()
