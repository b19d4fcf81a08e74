"""
Ingestion Agent
---------------
Persists raw content records from a producer (a source adapter, a JSONL
export, ...) as ContentItems with language "unknown", deduplicated on
source_id. Each call is wrapped in an IngestionRun record:

  running → completed      counts recorded
  running → failed         error recorded, exception re-raised

Input  : Iterable[RawContentRecord]
Output : {"run_id", "processed", "ingested", "skipped"}
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, Union

from agents.base import Agent
from db.repository import PipelineStore
from models.schemas import Platform, RawContentRecord

logger = logging.getLogger(__name__)

RecordProducer = Callable[[], Iterable[RawContentRecord]]


def parse_record(raw: Dict) -> RawContentRecord:
    """One JSON object → RawContentRecord. Raises ValueError/KeyError on bad input."""
    platform = str(raw.get("source_platform", Platform.OTHER.value)).lower()
    try:
        source_platform = Platform(platform)
    except ValueError:
        source_platform = Platform.OTHER

    published = raw["published_at"]
    if isinstance(published, str):
        published = datetime.fromisoformat(published.replace("Z", "+00:00"))
    if published.tzinfo is not None:
        published = published.replace(tzinfo=None) - published.utcoffset()

    return RawContentRecord(
        source_platform=source_platform,
        source_id=str(raw["source_id"]),
        title=raw.get("title"),
        body_text=str(raw.get("body_text") or ""),
        published_at=published,
        metadata=dict(raw.get("metadata") or {}),
    )


def load_jsonl_records(path: Union[str, Path]) -> Iterator[RawContentRecord]:
    """Yield records from a JSON-lines file; malformed lines are logged and skipped."""
    with open(path, encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, 1):
            line = line.strip()
            if not line:
                continue
            try:
                yield parse_record(json.loads(line))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping line {lineno} of {path}: {e}")


class IngestionAgent(Agent):
    """
    Parameters
    ----------
    source : str
        Name recorded on the IngestionRun (e.g. "reddit", "jsonl:export.jsonl").
    producer : callable
        Returns the records to ingest; called once per run.
    """

    display_name = "Content Ingestion"

    def __init__(self, store: PipelineStore, source: str, producer: RecordProducer):
        super().__init__(name="IngestionAgent", store=store)
        self.source = source
        self.producer = producer

    def run(self) -> Dict[str, int]:
        self.logger.info(f"📥 Starting ingestion from {self.source}...")
        ingestion_run = self.store.start_ingestion_run(self.source)

        processed = 0
        ingested = 0
        try:
            for record in self.producer():
                processed += 1
                if self.store.add_content(record):
                    ingested += 1
        except Exception as e:
            self.store.fail_ingestion_run(ingestion_run.run_id, str(e), processed, ingested)
            self.logger.error(f"  ❌ Ingestion from {self.source} failed: {e}")
            raise

        self.store.complete_ingestion_run(ingestion_run.run_id, processed, ingested)
        self.logger.info(
            f"✅ Ingestion complete: {ingested} new of {processed} records "
            f"({processed - ingested} duplicates)"
        )
        return {
            "run_id": ingestion_run.run_id,
            "processed": processed,
            "ingested": ingested,
            "skipped": processed - ingested,
        }
