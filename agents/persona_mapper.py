"""
Persona Mapping Agent
---------------------
Scores every BehaviorCluster against the persona catalog and keeps the top
associations as "auto" PersonaClusterLinks.

Association score for one persona, over its keywords + pain points + typical
behaviors (lowercased):

  term found verbatim in the cluster text          → 1.0
  ≥ 50% of the term's words found in the text      → 0.7 × word-match ratio

  score = Σ weights / n_terms × (1 + matched_terms / n_terms × 0.5), capped at 1

Links are replaced wholesale per cluster on every run.

Input  : all BehaviorClusters, all Personas
Output : {"clusters", "mappings"}
"""

import logging
from typing import Dict, List, Sequence

from agents.base import Agent
from config.settings import settings
from db.repository import PipelineStore
from models.schemas import AssignmentMethod, BehaviorCluster, Persona, PersonaClusterLink

logger = logging.getLogger(__name__)


def cluster_text(cluster: BehaviorCluster) -> str:
    return " ".join([cluster.label, cluster.summary, *cluster.top_phrases]).lower()


def association_score(text: str, terms: Sequence[str]) -> float:
    if not terms:
        return 0.0

    match_count = 0
    weighted = 0.0
    for term in terms:
        if term in text:
            match_count += 1
            weighted += 1.0
            continue

        words = term.split()
        if not words:
            continue
        matching = sum(1 for w in words if w in text)
        partial = matching / len(words)
        if matching and partial >= 0.5:
            match_count += 1
            weighted += partial * 0.7

    score = weighted / len(terms)
    match_ratio = match_count / len(terms)
    return min(1.0, score * (1 + match_ratio * 0.5))


class PersonaMappingAgent(Agent):
    """
    Parameters
    ----------
    threshold : float
        Minimum association score for a link.
    max_personas : int
        Links kept per cluster, highest score first.
    """

    display_name = "Persona Mapping"

    def __init__(
        self,
        store: PipelineStore,
        threshold: float = settings.ASSOCIATION_THRESHOLD,
        max_personas: int = settings.MAX_PERSONAS_PER_CLUSTER,
    ):
        super().__init__(name="PersonaMappingAgent", store=store)
        self.threshold = threshold
        self.max_personas = max_personas

    def run(self) -> Dict[str, int]:
        self.logger.info("🎭 Starting persona mapping...")
        personas = self.store.list_personas()
        if not personas:
            self.logger.warning("  ⚠️ No personas found. Run seed first.")
            return {"clusters": 0, "mappings": 0}

        clusters = self.store.list_clusters()
        self.logger.info(f"  Mapping {len(clusters)} clusters to {len(personas)} personas")

        mapped_clusters = 0
        mappings = 0
        for cluster in clusters:
            try:
                links = self.score_cluster(cluster, personas)
                self.store.replace_persona_links(cluster.cluster_id, links)
                mapped_clusters += 1
                mappings += len(links)
            except Exception as e:
                self.logger.error(f"  ❌ Error mapping cluster {cluster.cluster_id}: {e}")

        self.logger.info(f"✅ Persona mapping complete: {mappings} mappings created")
        return {"clusters": mapped_clusters, "mappings": mappings}

    def score_cluster(
        self, cluster: BehaviorCluster, personas: Sequence[Persona]
    ) -> List[PersonaClusterLink]:
        """Top-scoring personas for one cluster, highest first."""
        text = cluster_text(cluster)
        scored = []
        for persona in personas:
            score = association_score(text, persona.match_terms)
            if score >= self.threshold:
                scored.append((persona, score))

        scored.sort(key=lambda ps: ps[1], reverse=True)
        return [
            PersonaClusterLink(
                persona_id=persona.persona_id,
                cluster_id=cluster.cluster_id,
                association_score=round(score, 2),
                assignment_method=AssignmentMethod.AUTO,
            )
            for persona, score in scored[:self.max_personas]
        ]
