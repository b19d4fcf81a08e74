from .database import (
    init_db, session_scope, create_db_engine, create_session_factory, engine, SessionLocal
)
from .repository import PipelineStore, SQLAlchemyStore

__all__ = [
    "init_db", "session_scope", "create_db_engine", "create_session_factory",
    "engine", "SessionLocal", "PipelineStore", "SQLAlchemyStore",
]
