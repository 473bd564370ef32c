"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "contextory.db"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"

SUPPORTED_PROVIDERS = ("openai", "anthropic", "openrouter")


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    database_path: Path = Field(..., description="SQLite file holding collections, records and graphs")
    openai_api_key: Optional[str] = Field(default=None, description="Server-side OpenAI key")
    anthropic_api_key: Optional[str] = Field(default=None, description="Server-side Anthropic key")
    openrouter_api_key: Optional[str] = Field(default=None, description="Server-side OpenRouter key")
    extraction_provider: str = Field(
        default="openai",
        description="Provider used when the caller does not choose one",
    )
    extraction_max_chars: int = Field(
        default=12000,
        ge=1000,
        description="Character budget for the parsed extraction input",
    )
    llm_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound on a single text-generation call",
    )
    cors_origins: list[str] = Field(default_factory=list)

    @field_validator("database_path", mode="before")
    @classmethod
    def _normalize_db_path(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            raise ValueError("DATABASE_PATH is required")
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("openai_api_key", "anthropic_api_key", "openrouter_api_key", mode="before")
    @classmethod
    def _blank_key_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @field_validator("extraction_provider")
    @classmethod
    def _known_provider(cls, value: str) -> str:
        provider = value.strip().lower()
        if provider not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"EXTRACTION_PROVIDER must be one of {', '.join(SUPPORTED_PROVIDERS)}"
            )
        return provider

    def credential_for(self, provider: str) -> Optional[str]:
        """Return the configured server-side key for a provider, if any."""
        return {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "openrouter": self.openrouter_api_key,
        }.get(provider)


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    origins = _read_env("CORS_ORIGINS", DEFAULT_CORS_ORIGINS) or ""
    config = AppConfig(
        database_path=_read_env("DATABASE_PATH", str(DEFAULT_DB_PATH)),
        openai_api_key=_read_env("OPENAI_API_KEY"),
        anthropic_api_key=_read_env("ANTHROPIC_API_KEY"),
        openrouter_api_key=_read_env("OPENROUTER_API_KEY"),
        extraction_provider=_read_env("EXTRACTION_PROVIDER", "openai"),
        extraction_max_chars=int(_read_env("EXTRACTION_MAX_CHARS", "12000")),
        llm_timeout_seconds=float(_read_env("LLM_TIMEOUT_SECONDS", "60")),
        cors_origins=[origin.strip() for origin in origins.split(",") if origin.strip()],
    )
    # Ensure the data directory exists for downstream services.
    config.database_path.parent.mkdir(parents=True, exist_ok=True)
    return config


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "PROJECT_ROOT",
    "DEFAULT_DB_PATH",
    "SUPPORTED_PROVIDERS",
]
