"""
FastAPI Route Handlers
MatchPulse Analytics Pipeline
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request

from api.schemas import (
    ClusterDetailResponse, ClusterResponse, HealthResponse, OpportunityResponse,
    PersonaResponse, PipelineResponse, RunPipelineRequest, UpdateOpportunityRequest,
)
from config.settings import settings
from db.repository import PipelineStore
from models.schemas import OpportunityStatus, PipelineResult

logger = logging.getLogger(__name__)

router = APIRouter()

PipelineRunner = Callable[..., Tuple[PipelineResult, str]]


# ─── Dependencies ────────────────────────────────────────────────────────────

def get_store(request: Request) -> PipelineStore:
    """The process-wide store built in the app lifespan."""
    return request.app.state.store


def get_pipeline_runner() -> PipelineRunner:
    from utils.pipeline import run_pipeline
    return run_pipeline


# ─── Health ──────────────────────────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    return HealthResponse(
        status="ok",
        version=settings.APP_VERSION,
        timestamp=datetime.utcnow(),
    )


# ─── Clusters ────────────────────────────────────────────────────────────────

@router.get("/clusters", response_model=List[ClusterResponse], tags=["Clusters"])
def list_clusters(store: PipelineStore = Depends(get_store)):
    clusters = sorted(store.list_clusters(), key=lambda c: c.growth_score, reverse=True)
    return [
        ClusterResponse.from_cluster(c, store.list_persona_links(c.cluster_id))
        for c in clusters
    ]


@router.get("/clusters/{cluster_id}", response_model=ClusterDetailResponse, tags=["Clusters"])
def get_cluster(cluster_id: int, samples: int = 5, store: PipelineStore = Depends(get_store)):
    cluster = store.get_cluster(cluster_id)
    if cluster is None:
        raise HTTPException(status_code=404, detail=f"Cluster {cluster_id} not found.")
    base = ClusterResponse.from_cluster(cluster, store.list_persona_links(cluster_id))
    members = store.list_cluster_members(cluster_id, limit=max(0, samples))
    return ClusterDetailResponse(
        **base.model_dump(),
        sample_posts=[m.full_text for m in members],
    )


# ─── Personas ────────────────────────────────────────────────────────────────

@router.get("/personas", response_model=List[PersonaResponse], tags=["Personas"])
def list_personas(store: PipelineStore = Depends(get_store)):
    return [PersonaResponse.from_persona(p) for p in store.list_personas()]


# ─── Opportunities ───────────────────────────────────────────────────────────

@router.get("/opportunities", response_model=List[OpportunityResponse], tags=["Opportunities"])
def list_opportunities(
    status: Optional[OpportunityStatus] = None,
    store: PipelineStore = Depends(get_store),
):
    return [OpportunityResponse.from_card(c) for c in store.list_opportunities(status)]


@router.get(
    "/opportunities/{opportunity_id}",
    response_model=OpportunityResponse,
    tags=["Opportunities"],
)
def get_opportunity(opportunity_id: int, store: PipelineStore = Depends(get_store)):
    card = store.get_opportunity(opportunity_id)
    if card is None:
        raise HTTPException(status_code=404, detail=f"Opportunity {opportunity_id} not found.")
    return OpportunityResponse.from_card(card)


@router.patch(
    "/opportunities/{opportunity_id}",
    response_model=OpportunityResponse,
    tags=["Opportunities"],
)
def update_opportunity(
    opportunity_id: int,
    request: UpdateOpportunityRequest,
    store: PipelineStore = Depends(get_store),
):
    """Curator-owned fields only; the pipeline never overwrites these."""
    if request.status is None and request.notes is None:
        raise HTTPException(status_code=400, detail="Provide status and/or notes.")
    card = store.update_opportunity_curation(
        opportunity_id, status=request.status, notes=request.notes
    )
    if card is None:
        raise HTTPException(status_code=404, detail=f"Opportunity {opportunity_id} not found.")
    logger.info(f"Opportunity {opportunity_id} curated: status={card.status.value}")
    return OpportunityResponse.from_card(card)


# ─── Pipeline ────────────────────────────────────────────────────────────────

@router.post("/pipeline/run", response_model=PipelineResponse, tags=["Pipeline"])
def run_pipeline(
    request: Optional[RunPipelineRequest] = None,
    store: PipelineStore = Depends(get_store),
    runner: PipelineRunner = Depends(get_pipeline_runner),
):
    """
    Execute stages 1–6:
    Clean → Embed → Cluster → Label → Map Personas → Generate Opportunities
    """
    request = request or RunPipelineRequest()
    # ConfigurationError is mapped to 503 by the app-level handler
    result, summary = runner(store, stop_on_failure=request.stop_on_failure)
    return PipelineResponse.from_result(result, summary)
