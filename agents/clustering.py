"""
Clustering Agent
----------------
Groups embedded ContentItems into BehaviorClusters with a greedy single-pass
nearest-centroid heuristic (an approximation of density clustering, not
HDBSCAN):

  1. Shuffle the embedded items with a seedable permutation.
  2. Compare each item against every in-memory candidate and attach it to the
     most similar one if that cosine similarity is ≥ SIMILARITY_THRESHOLD
     (0.65); the centroid becomes the mean of all member embeddings.
     Otherwise start a new candidate.
  3. Drop candidates with fewer than MIN_CLUSTER_SIZE members.
  4. A surviving candidate whose centroid is ≥ CLUSTER_MATCH_THRESHOLD (0.85)
     similar to a persisted cluster's centroid is merged into it; otherwise a
     new cluster is persisted with a placeholder label.

Clusters only grow; they are never split or deleted here.

Input  : English ContentItems with embeddings, within CONTENT_LOOKBACK_DAYS
Output : {"clusters_created", "items_assigned"}
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from agents.base import Agent
from agents.labeler import growth_score
from config.settings import settings
from db.repository import PipelineStore
from models.schemas import (
    BehaviorCluster,
    ContentItem,
    FixedDimensionVector,
    PlatformFractionMap,
)

logger = logging.getLogger(__name__)


def cosine_similarity(a, b) -> float:
    """Cosine of the angle between a and b; 0 for mismatched lengths or a zero vector."""
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape or a.size == 0:
        return 0.0
    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def compute_centroid(vectors: Sequence[np.ndarray]) -> np.ndarray:
    if not vectors:
        raise ValueError("Cannot compute the centroid of an empty set")
    return np.mean(np.vstack(vectors), axis=0)


def source_breakdown(items: Sequence[ContentItem]) -> PlatformFractionMap:
    counts = Counter(item.source_platform.value for item in items)
    return PlatformFractionMap.from_counts(counts)


@dataclass
class ClusterCandidate:
    """An in-memory cluster built during one pass."""
    members: List[ContentItem] = field(default_factory=list)
    centroid: Optional[np.ndarray] = None
    _sum: Optional[np.ndarray] = None

    def add(self, item: ContentItem, vector: np.ndarray) -> None:
        self.members.append(item)
        self._sum = vector.copy() if self._sum is None else self._sum + vector
        self.centroid = self._sum / len(self.members)

    @property
    def size(self) -> int:
        return len(self.members)


def form_candidates(
    items: Sequence[ContentItem],
    threshold: float = settings.SIMILARITY_THRESHOLD,
    rng: Optional[np.random.Generator] = None,
) -> List[ClusterCandidate]:
    """
    Single greedy pass over a random permutation of `items`.

    Items without an embedding are ignored. Order-sensitive: a different
    permutation may produce different candidates.
    """
    rng = rng if rng is not None else np.random.default_rng()
    embedded = [i for i in items if i.embedding is not None]
    candidates: List[ClusterCandidate] = []

    for idx in rng.permutation(len(embedded)):
        item = embedded[idx]
        vector = item.embedding.as_array()

        target = None
        best = threshold
        for candidate in candidates:
            similarity = cosine_similarity(vector, candidate.centroid)
            # ties keep the earlier candidate
            if similarity > best or (target is None and similarity == best):
                target, best = candidate, similarity

        if target is None:
            target = ClusterCandidate()
            candidates.append(target)
        target.add(item, vector)

    return candidates


class ClusteringAgent(Agent):
    """
    Parameters
    ----------
    similarity_threshold : float
        Minimum cosine similarity to join an in-memory candidate.
    match_threshold : float
        Minimum centroid similarity to treat a candidate as an existing cluster.
    min_cluster_size : int
        Candidates smaller than this are discarded.
    seed : int, optional
        Pins the shuffle so assignment order is reproducible.
    """

    display_name = "Clustering"

    def __init__(
        self,
        store: PipelineStore,
        similarity_threshold: float = settings.SIMILARITY_THRESHOLD,
        match_threshold: float = settings.CLUSTER_MATCH_THRESHOLD,
        min_cluster_size: int = settings.MIN_CLUSTER_SIZE,
        lookback_days: int = settings.CONTENT_LOOKBACK_DAYS,
        recent_window_days: int = settings.RECENT_WINDOW_DAYS,
        seed: Optional[int] = settings.CLUSTERING_SEED,
    ):
        super().__init__(name="ClusteringAgent", store=store)
        self.similarity_threshold = similarity_threshold
        self.match_threshold = match_threshold
        self.min_cluster_size = min_cluster_size
        self.lookback_days = lookback_days
        self.recent_window_days = recent_window_days
        self.seed = seed

    # ------------------------------------------------------------------
    def run(self) -> Dict[str, int]:
        self.logger.info("🔮 Starting clustering...")
        cutoff = datetime.utcnow() - timedelta(days=self.lookback_days)
        items = self.store.list_embedded_content(cutoff)
        self.logger.info(f"  Found {len(items)} items with embeddings")

        if len(items) < self.min_cluster_size:
            self.logger.warning("  ⚠️ Not enough items for clustering")
            return {"clusters_created": 0, "items_assigned": 0}

        rng = np.random.default_rng(self.seed)
        candidates = [
            c for c in form_candidates(items, self.similarity_threshold, rng)
            if c.size >= self.min_cluster_size
        ]
        self.logger.info(f"  Found {len(candidates)} valid clusters")

        clusters_created = 0
        items_assigned = 0

        for candidate in candidates:
            try:
                created, assigned = self._save_candidate(candidate)
                if created:
                    clusters_created += 1
                items_assigned += assigned
            except Exception as e:
                self.logger.error(f"  ❌ Error saving cluster: {e}")

        self.logger.info(
            f"✅ Clustering complete: {clusters_created} clusters, "
            f"{items_assigned} items assigned"
        )
        return {"clusters_created": clusters_created, "items_assigned": items_assigned}

    # ------------------------------------------------------------------
    def _find_match(self, centroid: np.ndarray) -> Optional[BehaviorCluster]:
        best, best_sim = None, self.match_threshold
        for cluster in self.store.list_clusters():
            if cluster.centroid is None:
                continue
            sim = cosine_similarity(centroid, cluster.centroid.as_array())
            if sim >= best_sim:
                best, best_sim = cluster, sim
        return best

    def _save_candidate(self, candidate: ClusterCandidate) -> Tuple[bool, int]:
        existing = self._find_match(candidate.centroid)

        members: Dict[int, ContentItem] = {}
        if existing is not None:
            for item in self.store.list_cluster_members(existing.cluster_id):
                members[item.content_id] = item
        for item in candidate.members:
            members[item.content_id] = item
        union = list(members.values())

        dimension = candidate.centroid.shape[0]
        vectors = [
            i.embedding.as_array() for i in union
            if i.embedding is not None and i.embedding.dimension == dimension
        ]
        centroid = compute_centroid(vectors)

        recent_cutoff = datetime.utcnow() - timedelta(days=self.recent_window_days)
        total = len(union)
        last_7d = sum(1 for i in union if i.published_at >= recent_cutoff)

        if existing is not None:
            existing.content_count_total = total
            existing.content_count_last_7d = last_7d
            existing.source_breakdown = source_breakdown(union)
            existing.centroid = FixedDimensionVector.from_array(centroid)
            existing.growth_score = growth_score(last_7d, total)
            self.store.update_cluster(existing)
            cluster_id = existing.cluster_id
            self.logger.info(f"  ↻ Merged {candidate.size} items into cluster {cluster_id}")
        else:
            cluster = self.store.create_cluster(
                BehaviorCluster(
                    cluster_id=None,
                    content_count_total=total,
                    content_count_last_7d=last_7d,
                    source_breakdown=source_breakdown(union),
                    centroid=FixedDimensionVector.from_array(centroid),
                    growth_score=growth_score(last_7d, total),
                )
            )
            cluster_id = cluster.cluster_id
            self.logger.info(f"  ✚ Created cluster {cluster_id} with {total} items")

        assigned = 0
        candidate_ids = {i.content_id for i in candidate.members}
        for item in union:
            if item.embedding is None:
                continue
            similarity = cosine_similarity(item.embedding.as_array(), centroid)
            try:
                self.store.upsert_membership(cluster_id, item.content_id, similarity)
                if item.content_id in candidate_ids:
                    assigned += 1
            except Exception as e:
                self.logger.error(
                    f"  ❌ Error assigning item {item.content_id} to cluster {cluster_id}: {e}"
                )

        return existing is None, assigned
