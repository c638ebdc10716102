"""Application configuration powered by Pydantic settings."""
from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    PROJECT_NAME: str = Field(default="MindPocket")
    VERSION: str = Field(default="0.1.0")

    DATABASE_URL: str = Field(default="postgresql+psycopg://postgres:postgres@db:5432/postgres")
    REDIS_URL: str = Field(default="redis://redis:6379/0")

    MINIO_ENDPOINT: str = Field(default="minio:9000")
    MINIO_ACCESS_KEY: str = Field(default="minioadmin")
    MINIO_SECRET_KEY: str = Field(default="minioadmin")
    MINIO_BUCKET: str = Field(default="mindpocket")
    MINIO_SECURE: bool = Field(default=False)
    MINIO_PUBLIC_ENDPOINT: str | None = Field(default=None)

    EMBEDDING_MODEL_NAME: str = Field(default="sentence-transformers/all-MiniLM-L6-v2")
    EMBEDDING_DIM: int = Field(default=1536)
    SEARCH_TOP_K: int = Field(default=8)

    OLLAMA_HOST: str = Field(default="http://host.docker.internal:11434")
    OLLAMA_FALLBACK_HOST: str | None = Field(default=None)
    OLLAMA_MODEL: str = Field(default="qwen2.5:7b")
    OLLAMA_TIMEOUT: float = Field(default=120.0)

    FRONTEND_URL: str = Field(default="http://localhost:3000")

    SESSION_SECRET: str = Field(default="change-me")
    SESSION_COOKIE_NAME: str = Field(default="mindpocket_session")
    SESSION_COOKIE_SECURE: bool = Field(default=False)

    LOCAL_LOGIN_ENABLED: bool = Field(default=True)
    LOCAL_LOGIN_EMAIL: str = Field(default="dev@mindpocket.local")
    LOCAL_LOGIN_PASSWORD: str = Field(default="mindpocket")

    UPLOAD_MAX_BYTES: int = Field(default=50 * 1024 * 1024)
    UPLOAD_ALLOWED_EXTENSIONS: tuple[str, ...] = Field(
        default=(
            ".pdf",
            ".docx",
            ".xlsx",
            ".csv",
            ".html",
            ".htm",
            ".xml",
            ".jpg",
            ".jpeg",
            ".png",
            ".gif",
            ".webp",
            ".wav",
            ".ipynb",
            ".zip",
        )
    )

    FETCH_TIMEOUT: float = Field(default=20.0)
    BROWSER_TIMEOUT_MS: int = Field(default=30_000)
    BROWSER_EXECUTABLE_PATH: str | None = Field(default=None)
    BROWSER_USER_AGENT: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
        )
    )
    BROWSER_ACCEPT_LANGUAGE: str = Field(default="zh-CN,zh;q=0.9,en;q=0.8")

    AUTO_FOLDER_ENABLED: bool = Field(default=True)
    AUTO_FOLDER_MAX_STEPS: int = Field(default=4)

    INGEST_STALE_AFTER_MINUTES: int = Field(default=30)
    INGEST_RECONCILE_INTERVAL_SECONDS: float = Field(default=300.0)

    HISTORY_DEFAULT_LIMIT: int = Field(default=20)
    HISTORY_MAX_LIMIT: int = Field(default=100)

    RATE_LIMIT_INGESTION: str = Field(default="30/minute")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> Settings:
    """Return cached settings instance to avoid repeated parsing."""

    if overrides:
        return Settings(**overrides)
    return Settings()


settings = get_settings()
