"""
Cluster Labeling Agent
----------------------
Turns clusters still carrying the placeholder label (or no phrases) into
something a PM can read:

  - top_phrases : the 10 highest-scoring bigrams/trigrams across up to 50
                  member posts, dating vocabulary counted double
  - label       : LLM-generated when configured, else the title-cased top phrase
  - summary     : LLM-generated, else a templated sentence
  - growth      : (last7d / total) / (7 / 30), rounded to 2 decimals

Input  : BehaviorClusters needing labels
Output : {"labeled"}
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from agents.base import Agent
from config.settings import settings
from db.repository import PipelineStore
from models.schemas import BehaviorCluster
from services.errors import LLMClientError
from services.llm import LLMClient

logger = logging.getLogger(__name__)


UNLABELED_TREND = "Unlabeled Trend"

DOMAIN_TERMS = (
    "dating", "relationship", "partner", "match", "swipe",
    "ghosting", "situationship", "talking stage", "ick",
    "first date", "red flag", "green flag", "texting",
    "commitment", "exclusive", "casual", "serious",
)

FILLER_PHRASES = ("i am", "i was", "i have", "it is", "the the", "and the", "to be")

_PUNCT_RE = re.compile(r"[^\w\s]")
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def growth_score(last_7d: int, total: int) -> float:
    """>1 means the last week is denser than a flat 30-day spread; 0 for empty clusters."""
    if total == 0:
        return 0.0
    expected_ratio = 7 / 30
    return round((last_7d / total) / expected_ratio, 2)


def _tokens(text: str) -> List[str]:
    cleaned = _PUNCT_RE.sub("", text.lower())
    return [w for w in cleaned.split() if len(w) > 2]


def _is_filler(phrase: str) -> bool:
    return any(f in phrase for f in FILLER_PHRASES)


def extract_top_phrases(
    texts: Sequence[str], top_n: int = settings.TOP_PHRASES_COUNT
) -> List[str]:
    counts: Counter = Counter()
    for text in texts:
        words = _tokens(text)
        for i in range(len(words) - 1):
            counts[f"{words[i]} {words[i + 1]}"] += 1
        for i in range(len(words) - 2):
            counts[f"{words[i]} {words[i + 1]} {words[i + 2]}"] += 1

    scored = []
    for phrase, count in counts.items():
        if _is_filler(phrase):
            continue
        boost = 2 if any(term in phrase for term in DOMAIN_TERMS) else 1
        scored.append((phrase, count * boost))

    # sorted() is stable, so ties keep first-seen order
    scored = sorted(scored, key=lambda p: p[1], reverse=True)
    return [phrase for phrase, _ in scored[:top_n]]


def title_case(phrase: str) -> str:
    return " ".join(w[:1].upper() + w[1:] for w in phrase.split(" "))


# ─── Label strategies ─────────────────────────────────────────────────────────


@dataclass
class ClusterLabel:
    label: str
    summary: str
    strategy: str


class LabelStrategy(ABC):
    """Produces a label and summary for a cluster from sample texts and phrases."""

    name = "base"

    @abstractmethod
    def label(
        self, cluster: BehaviorCluster, texts: Sequence[str], phrases: Sequence[str]
    ) -> ClusterLabel:
        raise NotImplementedError


class HeuristicLabelStrategy(LabelStrategy):
    name = "heuristic"

    def make_label(self, phrases: Sequence[str]) -> str:
        return title_case(phrases[0]) if phrases else UNLABELED_TREND

    def make_summary(self, cluster: BehaviorCluster, phrases: Sequence[str]) -> str:
        return (
            f"A cluster of {cluster.content_count_total} posts discussing "
            f"{', '.join(phrases[:3])}."
        )

    def label(self, cluster, texts, phrases) -> ClusterLabel:
        return ClusterLabel(
            label=self.make_label(phrases),
            summary=self.make_summary(cluster, phrases),
            strategy=self.name,
        )


class LLMState(str, Enum):
    ATTEMPT = "attempt"
    PARSE = "parse"
    FALLBACK = "fallback"
    DONE = "done"


LABEL_SYSTEM_PROMPT = "You analyze clusters of social media posts about dating."

LABEL_PROMPT = """You are analyzing a cluster of social media posts about dating.

Top phrases in this cluster: {phrases}

Sample posts:
{samples}

Based on this, provide:
1. A short, catchy label (3-6 words) that captures the main theme/behavior
2. A 1-2 sentence summary describing this dating trend or behavior

Respond in JSON format: {{"label": "...", "summary": "..."}}"""


def parse_label_payload(content: str) -> Optional[Dict[str, Any]]:
    """JSON object from a model reply: whole body first, then the first {...} span."""
    for candidate in (content, *_JSON_OBJECT_RE.findall(content)):
        try:
            parsed = json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


class LLMLabelStrategy(LabelStrategy):
    """
    Attempt → Parse → Fallback.

      ATTEMPT  : call the model in JSON mode; LLMClientError → FALLBACK
      PARSE    : decode the reply; no JSON object → FALLBACK
      FALLBACK : heuristic label and summary
    """

    name = "llm"

    def __init__(
        self,
        client: LLMClient,
        fallback: Optional[HeuristicLabelStrategy] = None,
        sample_size: int = settings.LLM_SAMPLE_SIZE,
        sample_chars: int = 200,
    ):
        self.client = client
        self.fallback = fallback or HeuristicLabelStrategy()
        self.sample_size = sample_size
        self.sample_chars = sample_chars

    def build_prompt(self, texts: Sequence[str], phrases: Sequence[str]) -> str:
        samples = "\n".join(
            f'{i}. "{t[:self.sample_chars]}..."'
            for i, t in enumerate(texts[:self.sample_size], 1)
        )
        return LABEL_PROMPT.format(phrases=", ".join(phrases), samples=samples)

    def label(self, cluster, texts, phrases) -> ClusterLabel:
        state = LLMState.ATTEMPT
        reply = ""
        payload: Optional[Dict[str, Any]] = None

        while state is not LLMState.DONE:
            if state is LLMState.ATTEMPT:
                try:
                    reply = self.client.generate(
                        self.build_prompt(texts, phrases),
                        system_prompt=LABEL_SYSTEM_PROMPT,
                        json_mode=True,
                    ).content
                    state = LLMState.PARSE
                except LLMClientError as e:
                    logger.warning(f"LLM labeling failed for cluster {cluster.cluster_id}: {e}")
                    state = LLMState.FALLBACK

            elif state is LLMState.PARSE:
                payload = parse_label_payload(reply)
                if payload is None:
                    logger.warning(
                        f"LLM returned no JSON object for cluster {cluster.cluster_id}"
                    )
                    state = LLMState.FALLBACK
                else:
                    state = LLMState.DONE

            else:
                return self.fallback.label(cluster, texts, phrases)

        label = payload.get("label")
        summary = payload.get("summary")
        return ClusterLabel(
            label=label.strip() if isinstance(label, str) and label.strip()
            else self.fallback.make_label(phrases),
            summary=summary.strip() if isinstance(summary, str) and summary.strip()
            else self.fallback.make_summary(cluster, phrases),
            strategy=self.name,
        )


# ─── Agent ────────────────────────────────────────────────────────────────────


class ClusterLabelingAgent(Agent):
    """
    Parameters
    ----------
    llm_client : LLMClient, optional
        When given, labels come from the model with heuristic fallback.
    sample_size : int
        Member posts sampled per cluster for phrase extraction.
    top_phrases : int
        Phrases kept per cluster.
    """

    display_name = "Cluster Labeling"

    def __init__(
        self,
        store: PipelineStore,
        llm_client: Optional[LLMClient] = None,
        sample_size: int = settings.LABEL_SAMPLE_SIZE,
        top_phrases: int = settings.TOP_PHRASES_COUNT,
        llm_sample_size: int = settings.LLM_SAMPLE_SIZE,
    ):
        super().__init__(name="ClusterLabelingAgent", store=store)
        self.sample_size = sample_size
        self.top_phrases = top_phrases
        if llm_client is not None:
            self.strategy: LabelStrategy = LLMLabelStrategy(llm_client, sample_size=llm_sample_size)
        else:
            self.strategy = HeuristicLabelStrategy()

    def run(self) -> Dict[str, int]:
        self.logger.info(f"🏷️ Starting cluster labeling ({self.strategy.name})...")
        clusters = self.store.list_clusters_needing_labels()
        self.logger.info(f"  Found {len(clusters)} clusters to label")

        labeled = 0
        for cluster in clusters:
            try:
                if self._label_cluster(cluster):
                    labeled += 1
            except Exception as e:
                self.logger.error(f"  ❌ Error labeling cluster {cluster.cluster_id}: {e}")

        self.logger.info(f"✅ Labeling complete: {labeled} clusters labeled")
        return {"labeled": labeled}

    def _label_cluster(self, cluster: BehaviorCluster) -> bool:
        members = self.store.list_cluster_members(cluster.cluster_id, limit=self.sample_size)
        texts = [m.full_text for m in members]
        if not texts:
            return False

        phrases = extract_top_phrases(texts, self.top_phrases)
        result = self.strategy.label(cluster, texts, phrases)

        cluster.label = result.label
        cluster.summary = result.summary
        cluster.top_phrases = phrases
        cluster.growth_score = growth_score(
            cluster.content_count_last_7d, cluster.content_count_total
        )
        self.store.update_cluster(cluster)
        self.logger.info(f'  ✓ Labeled: "{result.label}"')
        return True
