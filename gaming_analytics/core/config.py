"""Service settings, read from the environment and an optional .env file."""

from decimal import Decimal
from typing import Self

from pydantic import Field, PostgresDsn, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Connection, rate and scheduling settings for the analytics service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Gaming Analytics API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    RELOAD: bool = False
    SLOW_REPORT_MS: float = Field(default=2000, gt=0, description="Requests slower than this are logged as warnings")

    # Database (read replica of the betting store is fine, only snapshots are written)
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "betting"
    DATABASE_URL: str | None = Field(default=None, description="Overrides the POSTGRES_* parts, e.g. for SQLite")
    DATABASE_POOL_SIZE: int = Field(default=20, gt=0)
    DATABASE_MAX_OVERFLOW: int = Field(default=30, ge=0)

    # Redis (report cache)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None
    REDIS_URL: str | None = None
    REDIS_MAX_CONNECTIONS: int = Field(default=50, gt=0)
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, gt=0, description="Seconds; a slow cache must not stall reports")
    REPORT_CACHE_TTL: int = Field(default=60, ge=0, description="Seconds an ad-hoc report stays cached")

    @model_validator(mode="after")
    def fill_connection_urls(self) -> Self:
        """Derive DATABASE_URL and REDIS_URL from their parts when not set explicitly."""
        if not self.DATABASE_URL:
            dsn = PostgresDsn.build(
                scheme="postgresql+asyncpg",
                username=self.POSTGRES_USER,
                password=self.POSTGRES_PASSWORD,
                host=self.POSTGRES_SERVER,
                port=self.POSTGRES_PORT,
                path=self.POSTGRES_DB,
            )
            self.DATABASE_URL = str(dsn)
        if not self.REDIS_URL:
            auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
            self.REDIS_URL = f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return self

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["GET", "POST"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # Platform NGR waterfall (fractions of GGR / gateway volume)
    NGR_PROVIDER_FEE_RATE: Decimal = Field(default=Decimal("0.12"), ge=0, le=1)
    NGR_GATEWAY_FEE_RATE: Decimal = Field(default=Decimal("0.025"), ge=0, le=1)
    NGR_TAX_RATE: Decimal = Field(default=Decimal("0.15"), ge=0, le=1)
    NGR_OPERATIONAL_COST_RATE: Decimal = Field(default=Decimal("0.10"), ge=0, le=1)

    # Per-tenant NGR uses its own flat rates, both applied to tenant GGR.
    # Not the same numbers as the platform waterfall above; keep them separate.
    TENANT_TAX_RATE: Decimal = Field(default=Decimal("0.15"), ge=0, le=1)
    TENANT_FEE_RATE: Decimal = Field(default=Decimal("0.02"), ge=0, le=1)
    DEFAULT_PROVIDER_PERCENTAGE: Decimal = Field(default=Decimal("10"), ge=0, le=100)

    # Churn heuristics
    CHURN_INACTIVE_DAYS: int = Field(default=30, gt=0)
    CHURN_PATTERN_INACTIVE_DAYS: int = Field(default=3, gt=0)

    # Agent breakdown
    AGENT_PROFIT_LIMIT: int = Field(default=20, gt=0)

    # Scheduled snapshots
    SNAPSHOT_WORKER_ENABLED: bool = False
    SNAPSHOT_POLL_INTERVAL_SECONDS: int = Field(default=300, gt=0)
    SNAPSHOT_TYPES: list[str] = ["daily", "weekly", "monthly"]

    @model_validator(mode="after")
    def validate_snapshot_types(self) -> Self:
        """Reject unknown scheduled snapshot types at startup."""
        unknown = set(self.SNAPSHOT_TYPES) - {"daily", "weekly", "monthly"}
        if unknown:
            raise ValueError(f"Unsupported SNAPSHOT_TYPES: {', '.join(sorted(unknown))}")
        return self


settings = Settings()
