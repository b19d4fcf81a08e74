"""
Persistence port for the pipeline stages.

Every stage talks to storage through a ``PipelineStore`` handed to its
constructor. ``SQLAlchemyStore`` is the production implementation; point it at
an in-memory SQLite engine for tests.

Each write commits on its own, so a crash mid-stage keeps everything written
before it. Join-row replacement (persona links, opportunity creation) runs as
one transaction.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence

from sqlalchemy import select, delete
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from db import models as orm
from db.database import create_db_engine, create_session_factory, init_db, session_scope
from models.schemas import (
    AssignmentMethod,
    BehaviorCluster,
    ClusterMembership,
    ContentItem,
    FixedDimensionVector,
    IngestionRun,
    Language,
    OpportunityCard,
    OpportunityContent,
    OpportunityStatus,
    Persona,
    PersonaClusterLink,
    Platform,
    PlatformFractionMap,
    RawContentRecord,
    RunStatus,
    Severity,
)

logger = logging.getLogger(__name__)


# ─── Port ─────────────────────────────────────────────────────────────────────


class PipelineStore(ABC):
    """Read/write operations the pipeline needs from persistence."""

    # content
    @abstractmethod
    def add_content(self, record: RawContentRecord) -> bool: ...

    @abstractmethod
    def get_content(self, content_id: int) -> Optional[ContentItem]: ...

    @abstractmethod
    def list_content_by_language(self, language: Language) -> List[ContentItem]: ...

    @abstractmethod
    def set_language(self, content_id: int, language: Language) -> None: ...

    @abstractmethod
    def delete_content(self, content_id: int) -> None: ...

    @abstractmethod
    def list_unembedded_content(self, since: datetime, limit: int) -> List[ContentItem]: ...

    @abstractmethod
    def set_embedding(self, content_id: int, vector: Optional[FixedDimensionVector]) -> None: ...

    @abstractmethod
    def list_embedded_content(self, since: datetime) -> List[ContentItem]: ...

    # clusters
    @abstractmethod
    def list_clusters(self) -> List[BehaviorCluster]: ...

    @abstractmethod
    def get_cluster(self, cluster_id: int) -> Optional[BehaviorCluster]: ...

    @abstractmethod
    def create_cluster(self, cluster: BehaviorCluster) -> BehaviorCluster: ...

    @abstractmethod
    def update_cluster(self, cluster: BehaviorCluster) -> None: ...

    @abstractmethod
    def list_clusters_needing_labels(self) -> List[BehaviorCluster]: ...

    @abstractmethod
    def upsert_membership(self, cluster_id: int, content_id: int, similarity: float) -> None: ...

    @abstractmethod
    def list_memberships(self, cluster_id: int) -> List[ClusterMembership]: ...

    @abstractmethod
    def list_cluster_members(
        self, cluster_id: int, limit: Optional[int] = None
    ) -> List[ContentItem]: ...

    # personas
    @abstractmethod
    def list_personas(self) -> List[Persona]: ...

    @abstractmethod
    def upsert_persona(self, persona: Persona) -> Persona: ...

    @abstractmethod
    def list_persona_links(
        self, cluster_id: int, min_score: float = 0.0
    ) -> List[PersonaClusterLink]: ...

    @abstractmethod
    def replace_persona_links(
        self, cluster_id: int, links: Sequence[PersonaClusterLink]
    ) -> None: ...

    # opportunities
    @abstractmethod
    def find_opportunity_for_cluster(self, cluster_id: int) -> Optional[OpportunityCard]: ...

    @abstractmethod
    def create_opportunity(
        self,
        content: OpportunityContent,
        cluster_ids: Sequence[int],
        persona_ids: Sequence[int],
    ) -> OpportunityCard: ...

    @abstractmethod
    def update_opportunity_content(self, opportunity_id: int, content: OpportunityContent) -> None: ...

    @abstractmethod
    def update_opportunity_curation(
        self,
        opportunity_id: int,
        status: Optional[OpportunityStatus] = None,
        notes: Optional[str] = None,
    ) -> Optional[OpportunityCard]: ...

    @abstractmethod
    def get_opportunity(self, opportunity_id: int) -> Optional[OpportunityCard]: ...

    @abstractmethod
    def list_opportunities(
        self, status: Optional[OpportunityStatus] = None
    ) -> List[OpportunityCard]: ...

    # ingestion runs
    @abstractmethod
    def start_ingestion_run(self, source: str) -> IngestionRun: ...

    @abstractmethod
    def complete_ingestion_run(self, run_id: int, processed: int, ingested: int) -> None: ...

    @abstractmethod
    def fail_ingestion_run(
        self, run_id: int, error: str, processed: int = 0, ingested: int = 0
    ) -> None: ...

    @abstractmethod
    def list_ingestion_runs(self, limit: int = 20) -> List[IngestionRun]: ...


# ─── Row conversion ───────────────────────────────────────────────────────────


def _to_vector(raw: Any, owner: str) -> Optional[FixedDimensionVector]:
    if raw is None:
        return None
    try:
        return FixedDimensionVector.from_sequence(raw)
    except ValueError as e:
        logger.warning(f"Ignoring malformed vector on {owner}: {e}")
        return None


def _to_content(row: orm.ContentItem) -> ContentItem:
    return ContentItem(
        content_id=row.content_id,
        source_platform=Platform(row.source_platform),
        source_id=row.source_id,
        title=row.title,
        body_text=row.body_text,
        published_at=row.published_at,
        language=Language(row.language),
        embedding=_to_vector(row.embedding_vector, f"content {row.content_id}"),
        metadata=dict(row.metadata_json or {}),
    )


def _to_breakdown(raw: Any, cluster_id: int) -> PlatformFractionMap:
    try:
        return PlatformFractionMap({str(k): float(v) for k, v in (raw or {}).items()})
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring malformed source breakdown on cluster {cluster_id}: {e}")
        return PlatformFractionMap()


def _to_cluster(row: orm.BehaviorCluster) -> BehaviorCluster:
    return BehaviorCluster(
        cluster_id=row.cluster_id,
        label=row.label,
        summary=row.summary or "",
        top_phrases=list(row.top_phrases or []),
        content_count_total=row.content_count_total or 0,
        content_count_last_7d=row.content_count_last_7d or 0,
        source_breakdown=_to_breakdown(row.source_breakdown, row.cluster_id),
        centroid=_to_vector(row.centroid_vector, f"cluster {row.cluster_id}"),
        growth_score=row.growth_score if row.growth_score is not None else 1.0,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_persona(row: orm.Persona) -> Persona:
    return Persona(
        persona_id=row.persona_id,
        name=row.name,
        keywords=list(row.keywords or []),
        pain_points=list(row.pain_points or []),
        typical_behaviors=list(row.typical_behaviors or []),
        tagline=row.tagline or "",
        description=row.description or "",
        emoji=row.emoji or "",
        color=row.color or "",
        motivations=list(row.motivations or []),
        fears=list(row.fears or []),
        dating_goals=list(row.dating_goals or []),
        communication_style=row.communication_style or "",
    )


def _to_opportunity(row: orm.OpportunityCard) -> OpportunityCard:
    return OpportunityCard(
        opportunity_id=row.opportunity_id,
        title=row.title,
        problem_statement=row.problem_statement or "",
        signals_summary=row.signals_summary or "",
        why_now=row.why_now or "",
        severity=Severity(row.severity),
        confidence=row.confidence or 0.0,
        status=OpportunityStatus(row.status),
        notes=row.notes,
        cluster_ids=sorted(c.cluster_id for c in row.clusters),
        persona_ids=sorted(p.persona_id for p in row.personas),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _to_run(row: orm.IngestionRun) -> IngestionRun:
    return IngestionRun(
        run_id=row.run_id,
        source=row.source,
        status=RunStatus(row.status),
        started_at=row.started_at,
        completed_at=row.completed_at,
        items_processed=row.items_processed or 0,
        items_ingested=row.items_ingested or 0,
        error=row.error,
    )


def _vector_json(vector: Optional[FixedDimensionVector]) -> Optional[List[float]]:
    return vector.to_list() if vector is not None else None


# ─── SQLAlchemy implementation ────────────────────────────────────────────────


class SQLAlchemyStore(PipelineStore):
    """PipelineStore over a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker):
        self._factory = session_factory

    @classmethod
    def from_url(cls, database_url: Optional[str] = None, create_tables: bool = True) -> "SQLAlchemyStore":
        engine = create_db_engine(database_url)
        return cls.from_engine(engine, create_tables=create_tables)

    @classmethod
    def from_engine(cls, engine: Engine, create_tables: bool = True) -> "SQLAlchemyStore":
        if create_tables:
            init_db(engine)
        return cls(create_session_factory(engine))

    def _session(self):
        return session_scope(self._factory)

    # ── content ──────────────────────────────────────────────────────────────

    def add_content(self, record: RawContentRecord) -> bool:
        with self._session() as db:
            exists = db.scalar(
                select(orm.ContentItem.content_id).where(
                    orm.ContentItem.source_id == record.source_id
                )
            )
            if exists is not None:
                return False
            db.add(
                orm.ContentItem(
                    source_platform=Platform(record.source_platform).value,
                    source_id=record.source_id,
                    title=record.title,
                    body_text=record.body_text,
                    published_at=record.published_at,
                    language=Language.UNKNOWN.value,
                    metadata_json=dict(record.metadata),
                )
            )
            return True

    def get_content(self, content_id: int) -> Optional[ContentItem]:
        with self._session() as db:
            row = db.get(orm.ContentItem, content_id)
            return _to_content(row) if row else None

    def list_content_by_language(self, language: Language) -> List[ContentItem]:
        with self._session() as db:
            rows = db.scalars(
                select(orm.ContentItem)
                .where(orm.ContentItem.language == Language(language).value)
                .order_by(orm.ContentItem.content_id)
            ).all()
            return [_to_content(r) for r in rows]

    def set_language(self, content_id: int, language: Language) -> None:
        with self._session() as db:
            row = db.get(orm.ContentItem, content_id)
            if row is None:
                raise KeyError(f"Content item {content_id} not found")
            row.language = Language(language).value

    def delete_content(self, content_id: int) -> None:
        with self._session() as db:
            row = db.get(orm.ContentItem, content_id)
            if row is not None:
                db.delete(row)

    def list_unembedded_content(self, since: datetime, limit: int) -> List[ContentItem]:
        with self._session() as db:
            rows = db.scalars(
                select(orm.ContentItem)
                .where(
                    orm.ContentItem.language == Language.EN.value,
                    orm.ContentItem.published_at >= since,
                    orm.ContentItem.embedding_vector.is_(None),
                )
                .order_by(orm.ContentItem.published_at.desc())
                .limit(limit)
            ).all()
            return [_to_content(r) for r in rows]

    def set_embedding(self, content_id: int, vector: Optional[FixedDimensionVector]) -> None:
        with self._session() as db:
            row = db.get(orm.ContentItem, content_id)
            if row is None:
                raise KeyError(f"Content item {content_id} not found")
            row.embedding_vector = _vector_json(vector)

    def list_embedded_content(self, since: datetime) -> List[ContentItem]:
        with self._session() as db:
            rows = db.scalars(
                select(orm.ContentItem)
                .where(
                    orm.ContentItem.language == Language.EN.value,
                    orm.ContentItem.published_at >= since,
                    orm.ContentItem.embedding_vector.is_not(None),
                )
                .order_by(orm.ContentItem.content_id)
            ).all()
            items = [_to_content(r) for r in rows]
            return [i for i in items if i.embedding is not None]

    # ── clusters ─────────────────────────────────────────────────────────────

    def list_clusters(self) -> List[BehaviorCluster]:
        with self._session() as db:
            rows = db.scalars(
                select(orm.BehaviorCluster).order_by(orm.BehaviorCluster.cluster_id)
            ).all()
            return [_to_cluster(r) for r in rows]

    def get_cluster(self, cluster_id: int) -> Optional[BehaviorCluster]:
        with self._session() as db:
            row = db.get(orm.BehaviorCluster, cluster_id)
            return _to_cluster(row) if row else None

    def create_cluster(self, cluster: BehaviorCluster) -> BehaviorCluster:
        now = datetime.utcnow()
        with self._session() as db:
            row = orm.BehaviorCluster(
                label=cluster.label,
                summary=cluster.summary,
                top_phrases=list(cluster.top_phrases),
                content_count_total=cluster.content_count_total,
                content_count_last_7d=cluster.content_count_last_7d,
                source_breakdown=cluster.source_breakdown.to_dict(),
                centroid_vector=_vector_json(cluster.centroid),
                growth_score=cluster.growth_score,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            db.flush()
            return _to_cluster(row)

    def update_cluster(self, cluster: BehaviorCluster) -> None:
        if cluster.cluster_id is None:
            raise ValueError("Cannot update a cluster without an id")
        with self._session() as db:
            row = db.get(orm.BehaviorCluster, cluster.cluster_id)
            if row is None:
                raise KeyError(f"Cluster {cluster.cluster_id} not found")
            row.label = cluster.label
            row.summary = cluster.summary
            row.top_phrases = list(cluster.top_phrases)
            row.content_count_total = cluster.content_count_total
            row.content_count_last_7d = cluster.content_count_last_7d
            row.source_breakdown = cluster.source_breakdown.to_dict()
            row.centroid_vector = _vector_json(cluster.centroid)
            row.growth_score = cluster.growth_score
            row.updated_at = datetime.utcnow()

    def list_clusters_needing_labels(self) -> List[BehaviorCluster]:
        # top_phrases is JSON, so the empty-list test happens here, not in SQL
        return [c for c in self.list_clusters() if c.needs_label]

    def upsert_membership(self, cluster_id: int, content_id: int, similarity: float) -> None:
        with self._session() as db:
            row = db.scalar(
                select(orm.ClusterMembership).where(
                    orm.ClusterMembership.cluster_id == cluster_id,
                    orm.ClusterMembership.content_id == content_id,
                )
            )
            if row is None:
                db.add(
                    orm.ClusterMembership(
                        cluster_id=cluster_id,
                        content_id=content_id,
                        similarity_score=similarity,
                    )
                )
            else:
                row.similarity_score = similarity
                row.assigned_at = datetime.utcnow()

    def list_memberships(self, cluster_id: int) -> List[ClusterMembership]:
        with self._session() as db:
            rows = db.scalars(
                select(orm.ClusterMembership)
                .where(orm.ClusterMembership.cluster_id == cluster_id)
                .order_by(orm.ClusterMembership.content_id)
            ).all()
            return [
                ClusterMembership(
                    cluster_id=r.cluster_id,
                    content_id=r.content_id,
                    similarity_score=r.similarity_score or 0.0,
                )
                for r in rows
            ]

    def list_cluster_members(
        self, cluster_id: int, limit: Optional[int] = None
    ) -> List[ContentItem]:
        with self._session() as db:
            stmt = (
                select(orm.ContentItem)
                .join(
                    orm.ClusterMembership,
                    orm.ClusterMembership.content_id == orm.ContentItem.content_id,
                )
                .where(orm.ClusterMembership.cluster_id == cluster_id)
                .order_by(orm.ClusterMembership.similarity_score.desc())
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            return [_to_content(r) for r in db.scalars(stmt).all()]

    # ── personas ─────────────────────────────────────────────────────────────

    def list_personas(self) -> List[Persona]:
        with self._session() as db:
            rows = db.scalars(select(orm.Persona).order_by(orm.Persona.persona_id)).all()
            return [_to_persona(r) for r in rows]

    def upsert_persona(self, persona: Persona) -> Persona:
        with self._session() as db:
            row = db.scalar(select(orm.Persona).where(orm.Persona.name == persona.name))
            if row is None:
                row = orm.Persona(name=persona.name)
                db.add(row)
            row.tagline = persona.tagline
            row.description = persona.description
            row.emoji = persona.emoji
            row.color = persona.color
            row.keywords = list(persona.keywords)
            row.motivations = list(persona.motivations)
            row.fears = list(persona.fears)
            row.dating_goals = list(persona.dating_goals)
            row.typical_behaviors = list(persona.typical_behaviors)
            row.communication_style = persona.communication_style
            row.pain_points = list(persona.pain_points)
            db.flush()
            return _to_persona(row)

    def list_persona_links(
        self, cluster_id: int, min_score: float = 0.0
    ) -> List[PersonaClusterLink]:
        with self._session() as db:
            rows = db.scalars(
                select(orm.PersonaClusterLink)
                .where(
                    orm.PersonaClusterLink.cluster_id == cluster_id,
                    orm.PersonaClusterLink.association_score >= min_score,
                )
                .order_by(
                    orm.PersonaClusterLink.association_score.desc(),
                    orm.PersonaClusterLink.persona_id,
                )
            ).all()
            return [
                PersonaClusterLink(
                    persona_id=r.persona_id,
                    cluster_id=r.cluster_id,
                    association_score=r.association_score,
                    assignment_method=AssignmentMethod(r.assignment_method),
                    persona=_to_persona(r.persona),
                )
                for r in rows
            ]

    def replace_persona_links(
        self, cluster_id: int, links: Sequence[PersonaClusterLink]
    ) -> None:
        with self._session() as db:
            db.execute(
                delete(orm.PersonaClusterLink).where(
                    orm.PersonaClusterLink.cluster_id == cluster_id
                )
            )
            for link in links:
                db.add(
                    orm.PersonaClusterLink(
                        persona_id=link.persona_id,
                        cluster_id=cluster_id,
                        association_score=link.association_score,
                        assignment_method=AssignmentMethod(link.assignment_method).value,
                    )
                )

    # ── opportunities ────────────────────────────────────────────────────────

    def find_opportunity_for_cluster(self, cluster_id: int) -> Optional[OpportunityCard]:
        with self._session() as db:
            row = db.scalar(
                select(orm.OpportunityCard)
                .join(orm.OpportunityCardCluster)
                .where(orm.OpportunityCardCluster.cluster_id == cluster_id)
                .order_by(orm.OpportunityCard.opportunity_id)
                .limit(1)
            )
            return _to_opportunity(row) if row else None

    def create_opportunity(
        self,
        content: OpportunityContent,
        cluster_ids: Sequence[int],
        persona_ids: Sequence[int],
    ) -> OpportunityCard:
        now = datetime.utcnow()
        with self._session() as db:
            row = orm.OpportunityCard(
                title=content.title,
                problem_statement=content.problem_statement,
                signals_summary=content.signals_summary,
                why_now=content.why_now,
                severity=Severity(content.severity).value,
                confidence=content.confidence,
                status=OpportunityStatus.NEW.value,
                created_at=now,
                updated_at=now,
            )
            row.clusters = [orm.OpportunityCardCluster(cluster_id=c) for c in _unique(cluster_ids)]
            row.personas = [orm.OpportunityCardPersona(persona_id=p) for p in _unique(persona_ids)]
            db.add(row)
            db.flush()
            return _to_opportunity(row)

    def update_opportunity_content(self, opportunity_id: int, content: OpportunityContent) -> None:
        with self._session() as db:
            row = db.get(orm.OpportunityCard, opportunity_id)
            if row is None:
                raise KeyError(f"Opportunity {opportunity_id} not found")
            # status and notes belong to the curator
            row.title = content.title
            row.problem_statement = content.problem_statement
            row.signals_summary = content.signals_summary
            row.why_now = content.why_now
            row.severity = Severity(content.severity).value
            row.confidence = content.confidence
            row.updated_at = datetime.utcnow()

    def update_opportunity_curation(
        self,
        opportunity_id: int,
        status: Optional[OpportunityStatus] = None,
        notes: Optional[str] = None,
    ) -> Optional[OpportunityCard]:
        with self._session() as db:
            row = db.get(orm.OpportunityCard, opportunity_id)
            if row is None:
                return None
            if status is not None:
                row.status = OpportunityStatus(status).value
            if notes is not None:
                row.notes = notes
            row.updated_at = datetime.utcnow()
            db.flush()
            return _to_opportunity(row)

    def get_opportunity(self, opportunity_id: int) -> Optional[OpportunityCard]:
        with self._session() as db:
            row = db.get(orm.OpportunityCard, opportunity_id)
            return _to_opportunity(row) if row else None

    def list_opportunities(
        self, status: Optional[OpportunityStatus] = None
    ) -> List[OpportunityCard]:
        with self._session() as db:
            stmt = select(orm.OpportunityCard).order_by(orm.OpportunityCard.opportunity_id)
            if status is not None:
                stmt = stmt.where(orm.OpportunityCard.status == OpportunityStatus(status).value)
            return [_to_opportunity(r) for r in db.scalars(stmt).all()]

    # ── ingestion runs ───────────────────────────────────────────────────────

    def start_ingestion_run(self, source: str) -> IngestionRun:
        with self._session() as db:
            row = orm.IngestionRun(
                source=source,
                status=RunStatus.RUNNING.value,
                started_at=datetime.utcnow(),
            )
            db.add(row)
            db.flush()
            return _to_run(row)

    def complete_ingestion_run(self, run_id: int, processed: int, ingested: int) -> None:
        self._finish_run(run_id, RunStatus.COMPLETED, processed, ingested, None)

    def fail_ingestion_run(
        self, run_id: int, error: str, processed: int = 0, ingested: int = 0
    ) -> None:
        self._finish_run(run_id, RunStatus.FAILED, processed, ingested, error)

    def _finish_run(
        self,
        run_id: int,
        status: RunStatus,
        processed: int,
        ingested: int,
        error: Optional[str],
    ) -> None:
        with self._session() as db:
            row = db.get(orm.IngestionRun, run_id)
            if row is None:
                raise KeyError(f"Ingestion run {run_id} not found")
            row.status = status.value
            row.completed_at = datetime.utcnow()
            row.items_processed = processed
            row.items_ingested = ingested
            row.error = error

    def list_ingestion_runs(self, limit: int = 20) -> List[IngestionRun]:
        with self._session() as db:
            rows = db.scalars(
                select(orm.IngestionRun).order_by(orm.IngestionRun.run_id.desc()).limit(limit)
            ).all()
            return [_to_run(r) for r in rows]


def _unique(ids: Iterable[int]) -> List[int]:
    seen = []
    for i in ids:
        if i not in seen:
            seen.append(i)
    return seen
