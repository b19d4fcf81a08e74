"""
Pipeline runner: wires the six analytics stages together and returns a PipelineResult.

Architecture:
  ContentCleaningAgent → EmbeddingAgent → ClusteringAgent
    → ClusterLabelingAgent → PersonaMappingAgent → OpportunityGenerationAgent

Stages share state only through the store. External services are built up
front in `build_stages()`, so a missing API key raises ConfigurationError
before any stage touches data.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from agents.base import Agent, Orchestrator
from agents.cleaner import ContentCleaningAgent
from agents.clustering import ClusteringAgent
from agents.embedder import EmbeddingAgent
from agents.labeler import ClusterLabelingAgent
from agents.opportunity import OpportunityGenerationAgent
from agents.persona_mapper import PersonaMappingAgent
from db.repository import PipelineStore
from models.schemas import PipelineResult
from services.embeddings import EmbeddingService, get_embedding_service
from services.llm import LLMClient, get_llm_client

logger = logging.getLogger(__name__)

STAGE_NAMES = ("clean", "embed", "cluster", "label", "map-personas", "opportunities")

_UNSET = object()


def build_stage(
    name: str,
    store: PipelineStore,
    embedding_service: Optional[EmbeddingService] = None,
    llm_client=_UNSET,
) -> Agent:
    """One stage by CLI name, with its external services resolved."""
    if name == "clean":
        return ContentCleaningAgent(store)
    if name == "embed":
        return EmbeddingAgent(store, embedding_service or get_embedding_service())
    if name == "cluster":
        return ClusteringAgent(store)
    if name == "label":
        client = get_llm_client() if llm_client is _UNSET else llm_client
        return ClusterLabelingAgent(store, llm_client=client)
    if name == "map-personas":
        return PersonaMappingAgent(store)
    if name == "opportunities":
        return OpportunityGenerationAgent(store)
    raise ValueError(f"Unknown stage: {name!r}")


def build_stages(
    store: PipelineStore,
    embedding_service: Optional[EmbeddingService] = None,
    llm_client: Optional[LLMClient] = _UNSET,
) -> List[Agent]:
    """
    All six stages in order.

    Parameters
    ----------
    embedding_service : EmbeddingService, optional
        Defaults to the configured provider.
    llm_client : LLMClient or None, optional
        Defaults to the configured client; pass None to force heuristic labels.
    """
    embedding_service = embedding_service or get_embedding_service()
    return [
        build_stage(name, store, embedding_service=embedding_service, llm_client=llm_client)
        for name in STAGE_NAMES
    ]


def run_stages(stages: List[Agent], stop_on_failure: bool = False) -> Tuple[PipelineResult, str]:
    orchestrator = Orchestrator(stages, stop_on_failure=stop_on_failure)
    results = orchestrator.execute()
    report = PipelineResult(
        run_id=str(uuid.uuid4()),
        stages=[
            r.to_report(agent.display_name or agent.name)
            for agent, r in zip(stages, results)
        ],
        executed_at=datetime.utcnow(),
    )
    return report, orchestrator.summary()


def run_pipeline(
    store: PipelineStore,
    embedding_service: Optional[EmbeddingService] = None,
    llm_client: Optional[LLMClient] = _UNSET,
    stop_on_failure: bool = False,
) -> Tuple[PipelineResult, str]:
    """
    End-to-end run of stages 1–6.

    Returns the PipelineResult and the rendered ✅/❌ summary table.
    """
    stages = build_stages(store, embedding_service=embedding_service, llm_client=llm_client)
    result, summary = run_stages(stages, stop_on_failure=stop_on_failure)
    logger.info("\n" + summary)
    if not result.success:
        logger.error(f"Pipeline finished with {len(result.failed_stages)} failed stage(s)")
    return result, summary
