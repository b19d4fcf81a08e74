"""
Ingestion tests.
"""

import json
from datetime import datetime

import pytest

from agents.ingestion import IngestionAgent, load_jsonl_records, parse_record
from models.schemas import Language, Platform, RawContentRecord, RunStatus


def records(n, prefix="r"):
    return [
        RawContentRecord(
            source_platform=Platform.REDDIT,
            source_id=f"{prefix}{i}",
            body_text=f"post {i} about the dating scene",
            published_at=datetime.utcnow(),
        )
        for i in range(n)
    ]


class TestIngestionAgent:
    def test_ingests_and_records_run(self, store):
        result = IngestionAgent(store, "reddit", lambda: records(3)).run()

        assert (result["processed"], result["ingested"], result["skipped"]) == (3, 3, 0)
        assert len(store.list_content_by_language(Language.UNKNOWN)) == 3
        [run] = store.list_ingestion_runs()
        assert run.status == RunStatus.COMPLETED
        assert run.items_ingested == 3

    def test_duplicates_are_skipped(self, store):
        IngestionAgent(store, "reddit", lambda: records(3)).run()
        result = IngestionAgent(store, "reddit", lambda: records(4)).run()
        assert (result["ingested"], result["skipped"]) == (1, 3)

    def test_failure_is_recorded_and_reraised(self, store):
        def producer():
            yield from records(2)
            raise ConnectionError("feed went away")

        with pytest.raises(ConnectionError):
            IngestionAgent(store, "youtube", producer).run()

        [run] = store.list_ingestion_runs()
        assert run.status == RunStatus.FAILED
        assert run.error == "feed went away"
        assert run.items_ingested == 2

    def test_execute_reports_failure(self, store):
        def producer():
            raise RuntimeError("boom")

        result = IngestionAgent(store, "youtube", producer).execute()
        assert not result.success
        assert result.error == "boom"


class TestJsonlLoader:
    def test_parse_record_normalizes_timezone(self):
        rec = parse_record({
            "source_platform": "YouTube",
            "source_id": 42,
            "body_text": "hello",
            "published_at": "2024-05-01T12:00:00+02:00",
        })
        assert rec.source_platform == Platform.YOUTUBE
        assert rec.source_id == "42"
        assert rec.published_at == datetime(2024, 5, 1, 10, 0, 0)
        assert rec.published_at.tzinfo is None

    def test_unknown_platform_maps_to_other(self):
        rec = parse_record({
            "source_platform": "mastodon", "source_id": "x",
            "published_at": "2024-05-01T00:00:00Z",
        })
        assert rec.source_platform == Platform.OTHER

    def test_malformed_lines_are_skipped(self, tmp_path):
        path = tmp_path / "export.jsonl"
        lines = [
            json.dumps({"source_platform": "reddit", "source_id": "a", "body_text": "one",
                        "published_at": "2024-05-01T00:00:00Z"}),
            "{not json",
            json.dumps({"source_platform": "reddit", "body_text": "missing id",
                        "published_at": "2024-05-01T00:00:00Z"}),
            "",
            json.dumps({"source_platform": "reddit", "source_id": "b", "body_text": "two",
                        "published_at": "2024-05-02T00:00:00Z"}),
        ]
        path.write_text("\n".join(lines), encoding="utf-8")

        loaded = list(load_jsonl_records(path))
        assert [r.source_id for r in loaded] == ["a", "b"]

    def test_loader_feeds_agent(self, store, tmp_path):
        path = tmp_path / "export.jsonl"
        path.write_text(json.dumps({
            "source_platform": "reddit", "source_id": "a", "body_text": "one",
            "published_at": "2024-05-01T00:00:00Z",
        }), encoding="utf-8")
        result = IngestionAgent(store, "jsonl", lambda: load_jsonl_records(path)).run()
        assert result["ingested"] == 1
