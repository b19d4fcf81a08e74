"""
Content cleaning tests.
"""

import pytest

from agents.cleaner import (
    COMMON_ENGLISH_WORDS, ContentCleaningAgent, detect_english,
    detect_language_advanced, english_word_ratio,
)
from models.schemas import Language

ENGLISH = "I think the date went well and I want to see her again"
GERMAN = "Ich habe keine Ahnung warum er nicht mehr antwortet"
SHORT = "hi there"


class TestEnglishHeuristic:
    def test_word_list_has_forty_entries(self):
        assert len(COMMON_ENGLISH_WORDS) == 40

    def test_ratio_counts_function_words(self):
        # i, the, and, i, to, her out of 13 tokens
        assert english_word_ratio(ENGLISH) == pytest.approx(6 / 13)

    def test_ratio_of_empty_text_is_zero(self):
        assert english_word_ratio("   ") == 0.0

    def test_english_detected(self):
        assert detect_english(ENGLISH)

    def test_non_english_rejected(self):
        assert not detect_english(GERMAN)

    def test_threshold_is_inclusive(self):
        # one match in ten tokens is exactly 0.10
        text = "the " + " ".join(["zzz"] * 9)
        assert detect_english(text, min_ratio=0.10)

    def test_classification_is_deterministic(self):
        results = {detect_english(ENGLISH) for _ in range(20)}
        assert results == {True}

    def test_advanced_detector_returns_unknown_without_features(self):
        assert detect_language_advanced("") == Language.UNKNOWN.value


class TestContentCleaningAgent:
    def test_short_items_are_deleted(self, store, add_items):
        [item] = add_items([SHORT], language=Language.UNKNOWN)
        result = ContentCleaningAgent(store).run()
        assert result["filtered"] == 1
        assert store.get_content(item.content_id) is None

    def test_english_items_are_tagged(self, store, add_items):
        [item] = add_items([ENGLISH], language=Language.UNKNOWN)
        result = ContentCleaningAgent(store).run()
        assert result == {"processed": 1, "kept": 1, "filtered": 0}
        assert store.get_content(item.content_id).language == Language.EN

    def test_non_english_items_are_deleted(self, store, add_items):
        [item] = add_items([GERMAN], language=Language.UNKNOWN)
        ContentCleaningAgent(store).run()
        assert store.get_content(item.content_id) is None

    def test_no_item_left_unknown(self, store, add_items):
        add_items([ENGLISH, GERMAN, SHORT, ENGLISH + " today"], language=Language.UNKNOWN)
        result = ContentCleaningAgent(store).run()
        assert result == {"processed": 4, "kept": 2, "filtered": 2}
        assert store.list_content_by_language(Language.UNKNOWN) == []
        assert len(store.list_content_by_language(Language.EN)) == 2

    def test_already_tagged_items_are_ignored(self, store, add_items):
        add_items([GERMAN], language=Language.EN)
        result = ContentCleaningAgent(store).run()
        assert result["processed"] == 0
        assert len(store.list_content_by_language(Language.EN)) == 1

    def test_execute_wraps_result(self, store, add_items):
        add_items([ENGLISH], language=Language.UNKNOWN)
        result = ContentCleaningAgent(store).execute()
        assert result.success
        assert result.data["kept"] == 1
        assert result.duration_seconds is not None

    def test_second_opinion_logs_but_does_not_decide(self, store, add_items, monkeypatch):
        monkeypatch.setattr("agents.cleaner.detect_language_advanced", lambda text: "de")
        add_items([ENGLISH, GERMAN], language=Language.UNKNOWN)
        agent = ContentCleaningAgent(store, second_opinion=True)

        result = agent.run()

        assert (result["kept"], result["filtered"]) == (1, 1)
        # only the English verdict conflicts with "de"
        assert agent.disagreements == 1

    def test_second_opinion_off_by_default(self, store, add_items, monkeypatch):
        calls = []
        monkeypatch.setattr("agents.cleaner.detect_language_advanced", lambda text: calls.append(text))
        add_items([ENGLISH], language=Language.UNKNOWN)
        ContentCleaningAgent(store).run()
        assert calls == []
