"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.
"""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Document limits
    # ------------------------------------------------------------------
    max_char_count: int = 100_000   # ceiling on extracted document text

    # ------------------------------------------------------------------
    # Download links
    # ------------------------------------------------------------------
    # Overrides the forwarded-proto/host headers when building report links
    next_public_base_url: str = ""

    # ------------------------------------------------------------------
    # Artifact storage
    # ------------------------------------------------------------------
    temp_file_path: str = ""           # empty = derive from app_env
    cleanup_delay_seconds: float = 24 * 60 * 60

    # ------------------------------------------------------------------
    # LLM
    # ------------------------------------------------------------------
    openai_api_key:  str   = ""
    openai_model:    str   = "gpt-4o"
    llm_temperature: float = 0.1
    analysis_timeout_seconds: float = 180.0
    rules_dir: str = ""                # optional paragraph-rules.json / document-rules.json

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug: bool = False
    cors_allowed_origins: str = Field(default="*")

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def storage_root(self) -> str:
        """Directory that holds every submission's artifacts."""
        if self.temp_file_path:
            return self.temp_file_path
        if self.is_production:
            return "/tmp/paper-checker"
        return os.path.join(os.getcwd(), "tmp")

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
