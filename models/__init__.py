"""
Core data models for the MatchPulse analytics pipeline.
"""

from .schemas import (
    PLACEHOLDER_LABEL,
    PLACEHOLDER_SUMMARY,
    Platform,
    Language,
    AssignmentMethod,
    OpportunityStatus,
    Severity,
    RunStatus,
    FixedDimensionVector,
    PlatformFractionMap,
    RawContentRecord,
    ContentItem,
    BehaviorCluster,
    ClusterMembership,
    Persona,
    PersonaClusterLink,
    OpportunityContent,
    OpportunityCard,
    IngestionRun,
    StageReport,
    PipelineResult,
)

__all__ = [
    "PLACEHOLDER_LABEL",
    "PLACEHOLDER_SUMMARY",
    "Platform",
    "Language",
    "AssignmentMethod",
    "OpportunityStatus",
    "Severity",
    "RunStatus",
    "FixedDimensionVector",
    "PlatformFractionMap",
    "RawContentRecord",
    "ContentItem",
    "BehaviorCluster",
    "ClusterMembership",
    "Persona",
    "PersonaClusterLink",
    "OpportunityContent",
    "OpportunityCard",
    "IngestionRun",
    "StageReport",
    "PipelineResult",
]
