"""
SQLAlchemy ORM Models
MatchPulse Analytics Pipeline
"""

from sqlalchemy import (
    Column, Integer, Float, String, Text,
    DateTime, ForeignKey, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship, declarative_base
from datetime import datetime

Base = declarative_base()


class ContentItem(Base):
    __tablename__ = "content_item"

    content_id = Column(Integer, primary_key=True, autoincrement=True)
    source_platform = Column(String(50), nullable=False)   # reddit, youtube, ...
    source_id = Column(String(255), nullable=False, unique=True)
    title = Column(Text)
    body_text = Column(Text, nullable=False)
    published_at = Column(DateTime, nullable=False)
    language = Column(String(20), default="unknown", nullable=False)
    embedding_vector = Column(JSON(none_as_null=True))
    metadata_json = Column(JSON)
    ingested_at = Column(DateTime, default=datetime.utcnow)

    memberships = relationship(
        "ClusterMembership", back_populates="content", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_content_language", "language"),
        Index("ix_content_published", "published_at"),
    )


class BehaviorCluster(Base):
    __tablename__ = "behavior_cluster"

    cluster_id = Column(Integer, primary_key=True, autoincrement=True)
    label = Column(String(255), nullable=False)
    summary = Column(Text)
    top_phrases = Column(JSON, default=list)
    content_count_total = Column(Integer, default=0)
    content_count_last_7d = Column(Integer, default=0)
    source_breakdown = Column(JSON, default=dict)
    centroid_vector = Column(JSON(none_as_null=True))
    growth_score = Column(Float, default=1.0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    memberships = relationship("ClusterMembership", back_populates="cluster")
    persona_links = relationship(
        "PersonaClusterLink", back_populates="cluster", cascade="all, delete-orphan"
    )


class ClusterMembership(Base):
    __tablename__ = "cluster_membership"

    membership_id = Column(Integer, primary_key=True, autoincrement=True)
    cluster_id = Column(Integer, ForeignKey("behavior_cluster.cluster_id"), nullable=False)
    content_id = Column(Integer, ForeignKey("content_item.content_id"), nullable=False)
    similarity_score = Column(Float)
    assigned_at = Column(DateTime, default=datetime.utcnow)

    cluster = relationship("BehaviorCluster", back_populates="memberships")
    content = relationship("ContentItem", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("cluster_id", "content_id", name="uq_membership_cluster_content"),
        Index("ix_membership_cluster", "cluster_id"),
    )


class Persona(Base):
    __tablename__ = "persona"

    persona_id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    tagline = Column(String(500))
    description = Column(Text)
    emoji = Column(String(16))
    color = Column(String(16))
    keywords = Column(JSON, default=list)
    motivations = Column(JSON, default=list)
    fears = Column(JSON, default=list)
    dating_goals = Column(JSON, default=list)
    typical_behaviors = Column(JSON, default=list)
    communication_style = Column(Text)
    pain_points = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)

    cluster_links = relationship("PersonaClusterLink", back_populates="persona")


class PersonaClusterLink(Base):
    __tablename__ = "persona_cluster_link"

    link_id = Column(Integer, primary_key=True, autoincrement=True)
    persona_id = Column(Integer, ForeignKey("persona.persona_id"), nullable=False)
    cluster_id = Column(Integer, ForeignKey("behavior_cluster.cluster_id"), nullable=False)
    association_score = Column(Float, nullable=False)
    assignment_method = Column(String(20), default="auto")
    created_at = Column(DateTime, default=datetime.utcnow)

    persona = relationship("Persona", back_populates="cluster_links")
    cluster = relationship("BehaviorCluster", back_populates="persona_links")

    __table_args__ = (
        UniqueConstraint("persona_id", "cluster_id", name="uq_link_persona_cluster"),
        Index("ix_link_cluster", "cluster_id"),
    )


class OpportunityCard(Base):
    __tablename__ = "opportunity_card"

    opportunity_id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False)
    problem_statement = Column(Text)
    signals_summary = Column(Text)
    why_now = Column(Text)
    status = Column(String(20), default="new", nullable=False)
    severity = Column(String(20), default="low", nullable=False)
    confidence = Column(Float, default=0.0)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    clusters = relationship(
        "OpportunityCardCluster", back_populates="opportunity", cascade="all, delete-orphan"
    )
    personas = relationship(
        "OpportunityCardPersona", back_populates="opportunity", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("ix_opportunity_status", "status"),)


class OpportunityCardCluster(Base):
    __tablename__ = "opportunity_card_cluster"

    opportunity_id = Column(
        Integer, ForeignKey("opportunity_card.opportunity_id"), primary_key=True
    )
    cluster_id = Column(Integer, ForeignKey("behavior_cluster.cluster_id"), primary_key=True)

    opportunity = relationship("OpportunityCard", back_populates="clusters")


class OpportunityCardPersona(Base):
    __tablename__ = "opportunity_card_persona"

    opportunity_id = Column(
        Integer, ForeignKey("opportunity_card.opportunity_id"), primary_key=True
    )
    persona_id = Column(Integer, ForeignKey("persona.persona_id"), primary_key=True)

    opportunity = relationship("OpportunityCard", back_populates="personas")


class IngestionRun(Base):
    __tablename__ = "ingestion_run"

    run_id = Column(Integer, primary_key=True, autoincrement=True)
    source = Column(String(50), nullable=False)
    status = Column(String(20), default="running", nullable=False)
    started_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)
    items_processed = Column(Integer, default=0)
    items_ingested = Column(Integer, default=0)
    error = Column(Text)
