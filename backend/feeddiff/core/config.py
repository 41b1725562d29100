import json
from typing import Annotated, List, Optional
from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    # API
    API_STR: str = Field("/api")

    # Database
    DATABASE_URL: str = Field("sqlite+aiosqlite:///./keylog.db")
    DATABASE_ECHO: bool = Field(False)
    AUTO_CREATE_TABLES: bool = Field(True)

    # Redis / worker
    REDIS_URL: str = Field("redis://localhost:6379/0")
    WORKER_QUEUE: str = Field("compare_queue")
    WORKER_MAX_RETRIES: int = Field(3, ge=1, le=10)

    # Key log store
    KEYLOG_INSERT_CHUNK_SIZE: int = Field(500, ge=1, le=10000)
    KEYLOG_DEFAULT_QUERY_LIMIT: int = Field(500, ge=1)
    KEYLOG_MAX_QUERY_LIMIT: int = Field(10000, ge=1)
    KEYLOG_MAX_KEY_PATHS: int = Field(100, ge=1)
    KEYLOG_RETENTION_DAYS: Optional[int] = Field(None, ge=1)

    # Maintenance
    MAINTENANCE_INTERVAL_SECONDS: int = Field(60, ge=5, le=3600)

    # Comparison engine
    CANONICAL_CACHE_IDLE_SECONDS: float = Field(60.0, gt=0)
    CANONICAL_CACHE_MAX_ENTRIES: int = Field(100_000, ge=1)
    DEFAULT_MAX_DIFF_COUNT: int = Field(999, ge=1)

    # CORS
    BACKEND_CORS_ORIGINS: Annotated[List[AnyHttpUrl], NoDecode] = Field([])

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, str):
            return json.loads(v)
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # Environment
    LOG_LEVEL: str = Field("info")
    LOG_DIR: str = Field("/tmp/logs")
    ENVIRONMENT: str = Field("production")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def sync_database_url(self) -> str:
        """Database URL with the synchronous driver, for Alembic."""
        return (
            self.DATABASE_URL
            .replace("postgresql+asyncpg://", "postgresql://")
            .replace("sqlite+aiosqlite://", "sqlite://")
        )


settings = Settings()
