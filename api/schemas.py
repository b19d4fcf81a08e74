"""
Pydantic schemas for API request/response validation.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime

from models.schemas import (
    BehaviorCluster, OpportunityCard, OpportunityStatus, Persona,
    PersonaClusterLink, PipelineResult, Severity,
)


# ─── Request Schemas ─────────────────────────────────────────────────────────

class UpdateOpportunityRequest(BaseModel):
    status: Optional[OpportunityStatus] = None
    notes: Optional[str] = Field(None, max_length=10_000)


class RunPipelineRequest(BaseModel):
    stop_on_failure: bool = False


# ─── Response Schemas ────────────────────────────────────────────────────────

class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime


class PersonaLinkResponse(BaseModel):
    persona_id: int
    persona_name: Optional[str] = None
    association_score: float
    assignment_method: str

    @classmethod
    def from_link(cls, link: PersonaClusterLink) -> "PersonaLinkResponse":
        return cls(
            persona_id=link.persona_id,
            persona_name=link.persona.name if link.persona else None,
            association_score=link.association_score,
            assignment_method=link.assignment_method.value,
        )


class ClusterResponse(BaseModel):
    cluster_id: int
    label: str
    summary: str
    top_phrases: List[str]
    content_count_total: int
    content_count_last_7d: int
    source_breakdown: Dict[str, float]
    growth_score: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    personas: List[PersonaLinkResponse] = []

    @classmethod
    def from_cluster(
        cls, cluster: BehaviorCluster, links: Optional[List[PersonaClusterLink]] = None
    ) -> "ClusterResponse":
        return cls(
            cluster_id=cluster.cluster_id,
            label=cluster.label,
            summary=cluster.summary,
            top_phrases=cluster.top_phrases,
            content_count_total=cluster.content_count_total,
            content_count_last_7d=cluster.content_count_last_7d,
            source_breakdown=cluster.source_breakdown.to_dict(),
            growth_score=cluster.growth_score,
            created_at=cluster.created_at,
            updated_at=cluster.updated_at,
            personas=[PersonaLinkResponse.from_link(l) for l in (links or [])],
        )


class ClusterDetailResponse(ClusterResponse):
    sample_posts: List[str] = []


class PersonaResponse(BaseModel):
    persona_id: int
    name: str
    tagline: str
    description: str
    emoji: str
    color: str
    keywords: List[str]
    pain_points: List[str]
    typical_behaviors: List[str]

    @classmethod
    def from_persona(cls, persona: Persona) -> "PersonaResponse":
        return cls(
            persona_id=persona.persona_id,
            name=persona.name,
            tagline=persona.tagline,
            description=persona.description,
            emoji=persona.emoji,
            color=persona.color,
            keywords=persona.keywords,
            pain_points=persona.pain_points,
            typical_behaviors=persona.typical_behaviors,
        )


class OpportunityResponse(BaseModel):
    opportunity_id: int
    title: str
    problem_statement: str
    signals_summary: str
    why_now: str
    severity: Severity
    confidence: float
    status: OpportunityStatus
    notes: Optional[str] = None
    cluster_ids: List[int]
    persona_ids: List[int]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_card(cls, card: OpportunityCard) -> "OpportunityResponse":
        return cls(
            opportunity_id=card.opportunity_id,
            title=card.title,
            problem_statement=card.problem_statement,
            signals_summary=card.signals_summary,
            why_now=card.why_now,
            severity=card.severity,
            confidence=card.confidence,
            status=card.status,
            notes=card.notes,
            cluster_ids=card.cluster_ids,
            persona_ids=card.persona_ids,
            created_at=card.created_at,
            updated_at=card.updated_at,
        )


class StageResponse(BaseModel):
    name: str
    success: bool
    duration_seconds: float
    details: Dict[str, Any] = {}
    error: Optional[str] = None


class PipelineResponse(BaseModel):
    run_id: str
    success: bool
    executed_at: datetime
    total_duration: float
    stages: List[StageResponse]
    summary: str

    @classmethod
    def from_result(cls, result: PipelineResult, summary: str) -> "PipelineResponse":
        return cls(
            run_id=result.run_id,
            success=result.success,
            executed_at=result.executed_at,
            total_duration=result.total_duration,
            stages=[
                StageResponse(
                    name=s.name,
                    success=s.success,
                    duration_seconds=s.duration_seconds,
                    details=s.details,
                    error=s.error,
                )
                for s in result.stages
            ],
            summary=summary,
        )
