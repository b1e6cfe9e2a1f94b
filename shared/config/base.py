from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseServiceSettings(BaseSettings):
    """Base configuration inherited by every StudyPotion service.

    Values are loaded from environment variables (or a local .env file).
    No defaults for the database DSN; a missing value raises ValidationError at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    service_name: str = Field(..., description="Service identifier")
    service_port: int = Field(default=8000, ge=1024, le=65535)
    app_version: str = Field(default="0.1.0")
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)

    # PostgreSQL (pgvector enabled)
    database_url: SecretStr = Field(..., description="asyncpg DSN")
    db_pool_size: int = Field(default=5, ge=1, le=100)
    db_max_overflow: int = Field(default=10, ge=0, le=200)

    # Hosted auth provider (Supabase-compatible)
    auth_url: str = Field(default="", description="Base URL of the auth provider")
    auth_api_key: SecretStr = Field(default=SecretStr(""))
    auth_timeout_seconds: float = Field(default=10.0, gt=0)

    # OpenAI
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    embedding_model: str = Field(default="text-embedding-3-small")
    embedding_dimensions: int = Field(default=1536, ge=0)
