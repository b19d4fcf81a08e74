from .base import Agent, AgentResult, Orchestrator
from .cleaner import ContentCleaningAgent
from .embedder import EmbeddingAgent
from .clustering import ClusteringAgent
from .labeler import ClusterLabelingAgent
from .persona_mapper import PersonaMappingAgent
from .opportunity import OpportunityGenerationAgent
from .ingestion import IngestionAgent

__all__ = [
    "Agent", "AgentResult", "Orchestrator",
    "ContentCleaningAgent", "EmbeddingAgent", "ClusteringAgent",
    "ClusterLabelingAgent", "PersonaMappingAgent",
    "OpportunityGenerationAgent", "IngestionAgent",
]
