"""Application settings and configuration.

This module defines all configuration options for the Tallyrank service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Tallyrank", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Security and authentication
    secret_key: str = Field(default="change-me-in-production", alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    debug: bool = Field(default=False, alias="DEBUG")

    # Database configuration
    database_url: str = Field(default="sqlite:///./tallyrank.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis backs the shared cooldown store; empty disables it.
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # Anonymous fingerprint format
    fingerprint_min_length: int = Field(default=16, alias="FINGERPRINT_MIN_LENGTH")
    fingerprint_max_length: int = Field(default=128, alias="FINGERPRINT_MAX_LENGTH")

    # Per-identity vote cooldown
    vote_cooldown_ms: int = Field(default=1000, alias="VOTE_COOLDOWN_MS")

    # Ranking weights; controversy is always subtracted.
    rank_weight_confidence: float = Field(default=0.60, alias="RANK_WEIGHT_CONFIDENCE")
    rank_weight_review: float = Field(default=0.20, alias="RANK_WEIGHT_REVIEW")
    rank_weight_recency: float = Field(default=0.15, alias="RANK_WEIGHT_RECENCY")
    rank_weight_controversy: float = Field(default=0.05, alias="RANK_WEIGHT_CONTROVERSY")

    # Ranking windows
    review_decay_days: float = Field(default=30.0, alias="REVIEW_DECAY_DAYS")
    recent_activity_days: float = Field(default=7.0, alias="RECENT_ACTIVITY_DAYS")
    recent_activity_normalizer: float = Field(
        default=100.0,
        alias="RECENT_ACTIVITY_NORMALIZER",
    )

    # Ranking refresh scheduling
    ranking_refresh_enabled: bool = Field(default=False, alias="RANKING_REFRESH_ENABLED")
    ranking_refresh_interval_seconds: float = Field(
        default=300.0,
        alias="RANKING_REFRESH_INTERVAL_SECONDS",
    )
    ranking_refresh_on_vote: bool = Field(default=False, alias="RANKING_REFRESH_ON_VOTE")
    ranking_max_workers: int = Field(default=1, alias="RANKING_MAX_WORKERS")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+psycopg://", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def ranking_weights(self) -> dict[str, float]:
        """Return the ranking weights as a convenience dictionary."""
        return {
            "confidence": self.rank_weight_confidence,
            "review": self.rank_weight_review,
            "recency": self.rank_weight_recency,
            "controversy": self.rank_weight_controversy,
        }


settings = Settings()
