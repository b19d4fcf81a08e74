"""
Content Cleaning Agent
----------------------
Post-ingestion cleaning of items whose language is still "unknown":

  1. Bodies shorter than MIN_CONTENT_LENGTH characters are deleted.
  2. A common-word heuristic decides English vs not; English items are tagged
     "en", everything else is deleted.

This is lossy: non-English and very short content is removed, not retained.
The heuristic is crude and misclassifies short, slang-heavy posts; that gap
is known and left as-is.
With LANGDETECT_SECOND_OPINION on, each verdict is also checked against
langdetect and disagreements are logged; the heuristic still decides.

Input  : ContentItems with language == unknown
Output : {"processed", "kept", "filtered"}
"""

import logging
from typing import Dict, FrozenSet

from agents.base import Agent
from config.settings import settings
from db.repository import PipelineStore
from models.schemas import Language

logger = logging.getLogger(__name__)


COMMON_ENGLISH_WORDS: FrozenSet[str] = frozenset({
    "the", "be", "to", "of", "and", "a", "in", "that", "have", "i",
    "it", "for", "not", "on", "with", "he", "as", "you", "do", "at",
    "this", "but", "his", "by", "from", "they", "we", "say", "her", "she",
    "or", "an", "will", "my", "one", "all", "would", "there", "their", "what",
})


def english_word_ratio(text: str) -> float:
    """Share of whitespace tokens that are common English function words."""
    words = text.lower().split()
    if not words:
        return 0.0
    matches = sum(1 for w in words if w in COMMON_ENGLISH_WORDS)
    return matches / len(words)


def detect_english(text: str, min_ratio: float = settings.ENGLISH_WORD_RATIO) -> bool:
    return english_word_ratio(text) >= min_ratio


def detect_language_advanced(text: str) -> str:
    """ISO code from langdetect, or "unknown" when it cannot decide."""
    from langdetect import detect, LangDetectException

    try:
        return detect(text)
    except LangDetectException:
        return Language.UNKNOWN.value


class ContentCleaningAgent(Agent):
    """
    Parameters
    ----------
    min_content_length : int
        Bodies shorter than this are deleted outright.
    min_english_ratio : float
        Common-word ratio at or above which a text counts as English.
    second_opinion : bool
        Log items where langdetect disagrees with the heuristic.
    """

    display_name = "Content Cleaning"

    def __init__(
        self,
        store: PipelineStore,
        min_content_length: int = settings.MIN_CONTENT_LENGTH,
        min_english_ratio: float = settings.ENGLISH_WORD_RATIO,
        second_opinion: bool = settings.LANGDETECT_SECOND_OPINION,
    ):
        super().__init__(name="ContentCleaningAgent", store=store)
        self.min_content_length = min_content_length
        self.min_english_ratio = min_english_ratio
        self.second_opinion = second_opinion
        self.disagreements = 0

    def run(self) -> Dict[str, int]:
        self.logger.info("🧹 Starting content cleaning...")
        self.disagreements = 0
        items = self.store.list_content_by_language(Language.UNKNOWN)
        self.logger.info(f"  Found {len(items)} items to process")

        kept = 0
        filtered = 0

        for item in items:
            try:
                if len(item.body_text) < self.min_content_length:
                    self.store.delete_content(item.content_id)
                    filtered += 1
                    continue

                is_english = detect_english(item.body_text, self.min_english_ratio)
                if self.second_opinion:
                    self._check_second_opinion(item.content_id, item.body_text, is_english)

                if is_english:
                    self.store.set_language(item.content_id, Language.EN)
                    kept += 1
                else:
                    self.store.delete_content(item.content_id)
                    filtered += 1
            except Exception as e:
                self.logger.error(f"  ❌ Error processing item {item.content_id}: {e}")

        if self.second_opinion:
            self.logger.info(f"  langdetect disagreed on {self.disagreements} item(s)")
        self.logger.info(f"✅ Content cleaning complete: {kept} kept, {filtered} filtered")
        return {"processed": len(items), "kept": kept, "filtered": filtered}

    def _check_second_opinion(self, content_id: int, text: str, is_english: bool) -> None:
        code = detect_language_advanced(text)
        if (code == Language.EN.value) != is_english:
            self.disagreements += 1
            verdict = "en" if is_english else "not en"
            self.logger.debug(f"  Item {content_id}: heuristic says {verdict}, langdetect says {code}")
