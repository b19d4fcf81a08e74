"""
Entry point for the MatchPulse analytics pipeline.

Usage:
  # Run every stage in order (clean → embed → cluster → label → personas → opportunities):
  python main.py pipeline

  # Run one stage on its own:
  python main.py clean | embed | cluster | label | map-personas | opportunities

  # Load raw content from a JSON-lines export:
  python main.py ingest --file export.jsonl --source reddit

  # Create tables / seed personas:
  python main.py init-db
  python main.py seed

  # Start the curation API:
  python main.py api
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)

logger = logging.getLogger("main")

EXIT_STAGE_FAILED = 1
EXIT_CONFIG_ERROR = 2


def get_store():
    from db.database import engine
    from db.repository import SQLAlchemyStore

    return SQLAlchemyStore.from_engine(engine)


def run_single_stage(name: str) -> int:
    from utils.pipeline import build_stage, run_stages

    store = get_store()
    result, summary = run_stages([build_stage(name, store)])
    print(summary)
    return 0 if result.success else EXIT_STAGE_FAILED


def run_full_pipeline(stop_on_failure: bool = False) -> int:
    from utils.pipeline import run_pipeline

    store = get_store()
    result, summary = run_pipeline(store, stop_on_failure=stop_on_failure)
    print(summary)
    return 0 if result.success else EXIT_STAGE_FAILED


def ingest(path: str, source: Optional[str] = None) -> int:
    from agents.ingestion import IngestionAgent, load_jsonl_records

    store = get_store()
    agent = IngestionAgent(
        store,
        source=source or f"jsonl:{path}",
        producer=lambda: load_jsonl_records(path),
    )
    result = agent.execute()
    print(result)
    return 0 if result.success else EXIT_STAGE_FAILED


def seed() -> int:
    from db.seed import seed_personas

    seed_personas(get_store())
    return 0


def init_database() -> int:
    from db.database import init_db

    init_db()
    return 0


def start_api(host: Optional[str] = None, port: Optional[int] = None, reload: bool = False) -> int:
    """Start the FastAPI server."""
    import uvicorn
    from config.settings import settings

    uvicorn.run(
        "api.main:app",
        host=host or settings.API_HOST,
        port=port or settings.API_PORT,
        reload=reload,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    from utils.pipeline import STAGE_NAMES

    parser = argparse.ArgumentParser(description="MatchPulse analytics pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in STAGE_NAMES:
        sub.add_parser(name, help=f"Run the {name} stage only")

    p = sub.add_parser("pipeline", help="Run stages 1-6 in order")
    p.add_argument("--stop-on-failure", action="store_true")

    p = sub.add_parser("ingest", help="Ingest raw content from a JSON-lines file")
    p.add_argument("--file", required=True)
    p.add_argument("--source", default=None)

    sub.add_parser("seed", help="Seed the persona catalog")
    sub.add_parser("init-db", help="Create database tables")

    p = sub.add_parser("api", help="Start the curation API")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)
    p.add_argument("--reload", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    from services.errors import ConfigurationError
    from utils.pipeline import STAGE_NAMES

    args = build_parser().parse_args(argv)

    try:
        if args.command in STAGE_NAMES:
            return run_single_stage(args.command)
        if args.command == "pipeline":
            return run_full_pipeline(stop_on_failure=args.stop_on_failure)
        if args.command == "ingest":
            return ingest(args.file, args.source)
        if args.command == "seed":
            return seed()
        if args.command == "init-db":
            return init_database()
        if args.command == "api":
            return start_api(args.host, args.port, args.reload)
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return EXIT_CONFIG_ERROR
    return 0


if __name__ == "__main__":
    sys.exit(main())
