"""
FastAPI Application Entry Point
MatchPulse Analytics Pipeline

The store is built once per process in `lifespan` and shared through
`app.state.store`; routes receive it via the `get_store` dependency.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import router
from config.settings import settings
from db.database import engine, init_db
from db.repository import SQLAlchemyStore
from services.errors import ConfigurationError
from utils.pipeline import STAGE_NAMES

logger = logging.getLogger(__name__)

# ─── Logging ─────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# ─── Lifecycle ───────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Starting MatchPulse API...")
    init_db(engine)
    store = SQLAlchemyStore.from_engine(engine)
    app.state.store = store
    logger.info(
        f"  Store ready: {len(store.list_clusters())} clusters, "
        f"{len(store.list_personas())} personas"
    )
    yield
    logger.info("👋 MatchPulse API shutting down")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Dating-behavior trend analytics: browse emergent behavior clusters and their "
        "persona associations, curate the opportunity cards the pipeline synthesizes, "
        "and trigger pipeline runs."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    """Missing credentials or an unknown provider: the service cannot run stages."""
    logger.error(f"Pipeline not configured: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# ─── Routes ──────────────────────────────────────────────────────────────────

app.include_router(router, prefix="/api/v1")


@app.get("/", tags=["System"])
async def root():
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "stages": list(STAGE_NAMES),
        "docs": "/docs",
        "status": "running",
    }
