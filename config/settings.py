"""
Configuration & Settings
MatchPulse Analytics Pipeline
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    # App
    APP_NAME: str = "MatchPulse Analytics Pipeline"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./matchpulse.db"

    # External services
    OPENAI_API_KEY: Optional[str] = None
    EMBEDDING_PROVIDER: str = "openai"          # openai | local
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    LOCAL_EMBEDDING_MODEL: str = "all-MiniLM-L6-v2"
    EMBEDDING_DIMENSION: Optional[int] = None   # None = whatever the model returns
    LABELING_MODEL: str = "gpt-4o-mini"
    USE_LLM_LABELING: bool = True

    # Cleaning
    MIN_CONTENT_LENGTH: int = 15
    ENGLISH_WORD_RATIO: float = 0.10
    LANGDETECT_SECOND_OPINION: bool = False     # log langdetect disagreements

    # Embeddings
    CONTENT_LOOKBACK_DAYS: int = 30
    EMBEDDING_BATCH_SIZE: int = 100
    EMBEDDING_MAX_TOKENS: int = 512
    EMBEDDING_FETCH_LIMIT: int = 10_000

    # Clustering
    # SIMILARITY_THRESHOLD: join a candidate within one run
    # CLUSTER_MATCH_THRESHOLD: re-identify a persisted cluster across runs
    MIN_CLUSTER_SIZE: int = 20
    SIMILARITY_THRESHOLD: float = 0.65
    CLUSTER_MATCH_THRESHOLD: float = 0.85
    CLUSTERING_SEED: Optional[int] = None
    RECENT_WINDOW_DAYS: int = 7

    # Labeling
    TOP_PHRASES_COUNT: int = 10
    LABEL_SAMPLE_SIZE: int = 50
    LLM_SAMPLE_SIZE: int = 20

    # Persona mapping
    ASSOCIATION_THRESHOLD: float = 0.3
    MAX_PERSONAS_PER_CLUSTER: int = 3

    # Opportunity generation
    MIN_CONTENT_COUNT: int = 20
    MIN_GROWTH_SCORE: float = 0.5
    OPPORTUNITY_LINK_THRESHOLD: float = 0.5

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000


settings = Settings()
