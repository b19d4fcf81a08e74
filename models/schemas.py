"""
Core data models / schemas for the MatchPulse analytics pipeline.

These are the records every stage works with. The ORM layer (db/models.py)
stores them; the repository converts between the two and validates the typed
value objects (FixedDimensionVector, PlatformFractionMap) on the way through.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np


PLACEHOLDER_LABEL = "Unlabeled Cluster"
PLACEHOLDER_SUMMARY = "Pending analysis..."


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Platform(str, Enum):
    REDDIT = "reddit"
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"
    TWITTER = "twitter"
    OTHER = "other"


class Language(str, Enum):
    UNKNOWN = "unknown"
    EN = "en"
    OTHER = "other"


class AssignmentMethod(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


class OpportunityStatus(str, Enum):
    NEW = "new"
    REVIEWED = "reviewed"
    IN_DISCOVERY = "in_discovery"
    NOT_RELEVANT = "not_relevant"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FixedDimensionVector:
    """An embedding or centroid. Immutable, finite, non-empty."""
    values: Tuple[float, ...]

    def __post_init__(self):
        if not self.values:
            raise ValueError("Vector must not be empty")
        if not all(math.isfinite(v) for v in self.values):
            raise ValueError("Vector contains non-finite values")

    @classmethod
    def from_sequence(
        cls, seq: Iterable[Any], dimension: Optional[int] = None
    ) -> "FixedDimensionVector":
        try:
            values = tuple(float(v) for v in seq)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Vector contains non-numeric values: {e}") from e
        vec = cls(values)
        if dimension is not None and vec.dimension != dimension:
            raise ValueError(
                f"Expected vector of dimension {dimension}, got {vec.dimension}"
            )
        return vec

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "FixedDimensionVector":
        return cls.from_sequence(np.asarray(arr, dtype=float).tolist())

    @property
    def dimension(self) -> int:
        return len(self.values)

    def as_array(self) -> np.ndarray:
        return np.asarray(self.values, dtype=float)

    def to_list(self) -> List[float]:
        return list(self.values)


@dataclass(frozen=True)
class PlatformFractionMap:
    """platform -> share of cluster members, two-decimal rounding."""
    fractions: Mapping[str, float] = field(default_factory=dict)

    SUM_TOLERANCE = 0.05

    def __post_init__(self):
        for platform, frac in self.fractions.items():
            if not 0.0 <= frac <= 1.0:
                raise ValueError(f"Fraction for {platform!r} out of range: {frac}")
        if self.fractions and abs(sum(self.fractions.values()) - 1.0) > self.SUM_TOLERANCE:
            raise ValueError(
                f"Source fractions must sum to ~1.0, got {sum(self.fractions.values()):.2f}"
            )

    @classmethod
    def from_counts(cls, counts: Mapping[str, int]) -> "PlatformFractionMap":
        total = sum(counts.values())
        if total == 0:
            return cls({})
        return cls({p: round(c / total, 2) for p, c in counts.items()})

    def percentages(self) -> Dict[str, int]:
        return {p: round(f * 100) for p, f in self.fractions.items()}

    def to_dict(self) -> Dict[str, float]:
        return dict(self.fractions)


# ---------------------------------------------------------------------------
# Ingested content
# ---------------------------------------------------------------------------

@dataclass
class RawContentRecord:
    """What a source adapter (Reddit, YouTube, ...) hands to ingestion."""
    source_platform: Platform
    source_id: str
    body_text: str
    published_at: datetime
    title: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ContentItem:
    content_id: int
    source_platform: Platform
    source_id: str
    body_text: str
    published_at: datetime
    title: Optional[str] = None
    language: Language = Language.UNKNOWN
    embedding: Optional[FixedDimensionVector] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def full_text(self) -> str:
        return f"{self.title or ''} {self.body_text}".strip()


# ---------------------------------------------------------------------------
# Clusters
# ---------------------------------------------------------------------------

@dataclass
class BehaviorCluster:
    cluster_id: Optional[int]
    label: str = PLACEHOLDER_LABEL
    summary: str = PLACEHOLDER_SUMMARY
    top_phrases: List[str] = field(default_factory=list)
    content_count_total: int = 0
    content_count_last_7d: int = 0
    source_breakdown: PlatformFractionMap = field(default_factory=PlatformFractionMap)
    centroid: Optional[FixedDimensionVector] = None
    growth_score: float = 1.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.content_count_last_7d > self.content_count_total:
            raise ValueError(
                f"content_count_last_7d ({self.content_count_last_7d}) exceeds "
                f"content_count_total ({self.content_count_total})"
            )

    @property
    def needs_label(self) -> bool:
        return self.label == PLACEHOLDER_LABEL or not self.top_phrases


@dataclass
class ClusterMembership:
    cluster_id: int
    content_id: int
    similarity_score: float


# ---------------------------------------------------------------------------
# Personas
# ---------------------------------------------------------------------------

@dataclass
class Persona:
    persona_id: Optional[int]
    name: str
    keywords: List[str] = field(default_factory=list)
    pain_points: List[str] = field(default_factory=list)
    typical_behaviors: List[str] = field(default_factory=list)
    tagline: str = ""
    description: str = ""
    emoji: str = ""
    color: str = ""
    motivations: List[str] = field(default_factory=list)
    fears: List[str] = field(default_factory=list)
    dating_goals: List[str] = field(default_factory=list)
    communication_style: str = ""

    @property
    def match_terms(self) -> List[str]:
        return [t.lower() for t in (*self.keywords, *self.pain_points, *self.typical_behaviors)]


@dataclass
class PersonaClusterLink:
    persona_id: int
    cluster_id: int
    association_score: float
    assignment_method: AssignmentMethod = AssignmentMethod.AUTO
    persona: Optional[Persona] = None


# ---------------------------------------------------------------------------
# Opportunities
# ---------------------------------------------------------------------------

@dataclass
class OpportunityContent:
    """The pipeline-derived part of an OpportunityCard."""
    title: str
    problem_statement: str
    signals_summary: str
    why_now: str
    severity: Severity
    confidence: float


@dataclass
class OpportunityCard:
    opportunity_id: Optional[int]
    title: str
    problem_statement: str
    signals_summary: str
    why_now: str
    severity: Severity
    confidence: float
    status: OpportunityStatus = OpportunityStatus.NEW
    notes: Optional[str] = None
    cluster_ids: List[int] = field(default_factory=list)
    persona_ids: List[int] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Run tracking
# ---------------------------------------------------------------------------

@dataclass
class IngestionRun:
    run_id: int
    source: str
    status: RunStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    items_processed: int = 0
    items_ingested: int = 0
    error: Optional[str] = None


@dataclass
class StageReport:
    name: str
    success: bool
    duration_seconds: float
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class PipelineResult:
    run_id: str
    stages: List[StageReport]
    executed_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def success(self) -> bool:
        return all(s.success for s in self.stages)

    @property
    def failed_stages(self) -> List[StageReport]:
        return [s for s in self.stages if not s.success]

    @property
    def total_duration(self) -> float:
        return sum(s.duration_seconds for s in self.stages)
