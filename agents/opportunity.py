"""
Opportunity Generation Agent
----------------------------
Synthesizes PM-facing OpportunityCards from clusters that are both busy and
growing and have at least one strong persona association:

  - content_count_last_7d ≥ MIN_CONTENT_COUNT   (default 20)
  - growth_score          ≥ MIN_GROWTH_SCORE    (default 0.5)
  - a persona link with association ≥ OPPORTUNITY_LINK_THRESHOLD (default 0.5)

Severity is banded on   growth × log10(last7d + 1) / 3:
  > 1.5 critical · > 1.0 high · > 0.5 medium · else low

An existing card for the cluster has its derived fields recomputed; status and
notes belong to the curator and are never touched.

Input  : BehaviorClusters + PersonaClusterLinks
Output : {"created", "updated"}
"""

import logging
import math
from typing import Dict, List, Optional, Sequence

from agents.base import Agent
from config.settings import settings
from db.repository import PipelineStore
from models.schemas import (
    BehaviorCluster,
    OpportunityContent,
    PersonaClusterLink,
    PlatformFractionMap,
    Severity,
)

logger = logging.getLogger(__name__)


def generate_title(cluster_label: str, persona_name: Optional[str] = None) -> str:
    if persona_name:
        return f"{cluster_label} - Opportunity for {persona_name}"
    return f"{cluster_label} - Emerging Behavior"


def generate_problem_statement(summary: str, pain_points: Sequence[str]) -> str:
    relevant_pain = "; ".join(pain_points[:2])
    if relevant_pain:
        return f"{summary}\n\nRelated pain points: {relevant_pain}"
    return summary


def generate_signals_summary(
    total: int,
    last_7d: int,
    phrases: Sequence[str],
    breakdown: PlatformFractionMap,
) -> str:
    parts = [f"{total:,} total mentions ({last_7d:,} in last 7 days)"]
    if phrases:
        quoted = '", "'.join(phrases[:3])
        parts.append(f'Key phrases: "{quoted}"')
    if breakdown.fractions:
        sources = ", ".join(f"{p}: {pct}%" for p, pct in breakdown.percentages().items())
        parts.append(f"Sources: {sources}")
    return "\n".join(parts)


def generate_why_now(growth: float) -> str:
    growth_percent = round((growth - 1) * 100)
    if growth_percent > 100:
        return (
            f"🔥 Explosive growth: {growth_percent}% above baseline activity in the past week. "
            "This trend is rapidly gaining traction and represents immediate opportunity."
        )
    if growth_percent > 50:
        return (
            f"📈 Strong momentum: {growth_percent}% above baseline. "
            "This behavior is accelerating and warrants attention."
        )
    if growth_percent > 0:
        return (
            f"📊 Growing trend: {growth_percent}% above baseline. "
            "Early signs of increasing relevance."
        )
    return (
        "📋 Consistent signal: This behavior maintains steady engagement "
        "and represents an ongoing user need."
    )


def severity_score(growth: float, last_7d: int) -> float:
    return growth * (math.log10(last_7d + 1) / 3)


def calculate_severity(growth: float, last_7d: int) -> Severity:
    score = severity_score(growth, last_7d)
    if score > 1.5:
        return Severity.CRITICAL
    if score > 1.0:
        return Severity.HIGH
    if score > 0.5:
        return Severity.MEDIUM
    return Severity.LOW


def build_opportunity_content(
    cluster: BehaviorCluster, links: Sequence[PersonaClusterLink]
) -> OpportunityContent:
    """Derived card fields; `links` sorted by association, strongest first."""
    top = links[0] if links else None
    persona = top.persona if top else None
    return OpportunityContent(
        title=generate_title(cluster.label, persona.name if persona else None),
        problem_statement=generate_problem_statement(
            cluster.summary, persona.pain_points if persona else []
        ),
        signals_summary=generate_signals_summary(
            cluster.content_count_total,
            cluster.content_count_last_7d,
            cluster.top_phrases,
            cluster.source_breakdown,
        ),
        why_now=generate_why_now(cluster.growth_score),
        severity=calculate_severity(cluster.growth_score, cluster.content_count_last_7d),
        confidence=min(1.0, top.association_score if top else 0.5),
    )


class OpportunityGenerationAgent(Agent):
    """
    Parameters
    ----------
    min_content_count : int
        Minimum posts in the last 7 days.
    min_growth_score : float
        Minimum growth score.
    link_threshold : float
        Minimum persona association for a cluster to qualify.
    """

    display_name = "Opportunity Generation"

    def __init__(
        self,
        store: PipelineStore,
        min_content_count: int = settings.MIN_CONTENT_COUNT,
        min_growth_score: float = settings.MIN_GROWTH_SCORE,
        link_threshold: float = settings.OPPORTUNITY_LINK_THRESHOLD,
    ):
        super().__init__(name="OpportunityGenerationAgent", store=store)
        self.min_content_count = min_content_count
        self.min_growth_score = min_growth_score
        self.link_threshold = link_threshold

    def qualifying_clusters(self) -> List[BehaviorCluster]:
        return [
            c for c in self.store.list_clusters()
            if c.content_count_last_7d >= self.min_content_count
            and c.growth_score >= self.min_growth_score
        ]

    def run(self) -> Dict[str, int]:
        self.logger.info("💡 Starting opportunity generation...")
        clusters = self.qualifying_clusters()
        self.logger.info(f"  Found {len(clusters)} qualifying clusters")

        created = 0
        updated = 0
        for cluster in clusters:
            strong_links = self.store.list_persona_links(
                cluster.cluster_id, min_score=self.link_threshold
            )
            if not strong_links:
                continue
            try:
                if self._create_or_update(cluster, strong_links):
                    created += 1
                else:
                    updated += 1
            except Exception as e:
                self.logger.error(
                    f"  ❌ Error generating opportunity for cluster {cluster.cluster_id}: {e}"
                )

        self.logger.info(
            f"✅ Opportunity generation complete: {created} created, {updated} updated"
        )
        return {"created": created, "updated": updated}

    def _create_or_update(
        self, cluster: BehaviorCluster, strong_links: Sequence[PersonaClusterLink]
    ) -> bool:
        content = build_opportunity_content(cluster, strong_links)
        existing = self.store.find_opportunity_for_cluster(cluster.cluster_id)

        if existing is not None:
            self.store.update_opportunity_content(existing.opportunity_id, content)
            self.logger.info(f"  ↻ Updated: {content.title}")
            return False

        persona_ids = [l.persona_id for l in self.store.list_persona_links(cluster.cluster_id)]
        self.store.create_opportunity(content, [cluster.cluster_id], persona_ids)
        self.logger.info(f"  ✚ Created: {content.title} [{content.severity.value}]")
        return True
