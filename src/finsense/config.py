"""Configuration helpers for the FinSense dashboard."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_dir() -> Path:
    # __file__ -> src/finsense/config.py; repo root is three levels up
    return Path(__file__).resolve().parents[2] / "data" / "saved"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", populate_by_name=True
    )

    app_id: str = Field(
        "default-app-id",
        alias="FINSENSE_APP_ID",
        description="Namespace that prefixes every saved-article key.",
    )
    data_dir: Path = Field(
        default_factory=_default_data_dir,
        alias="FINSENSE_DATA_DIR",
        description="Root directory for the file-backed saved-article store.",
    )
    catalog_path: Path | None = Field(
        None,
        alias="FINSENSE_CATALOG_PATH",
        description="Optional JSON catalog; the built-in sample headlines are used otherwise.",
    )
    user_id: str | None = Field(
        None,
        alias="FINSENSE_USER_ID",
        description="Default identity for CLI commands when --user is omitted.",
    )
    log_level: str = Field("INFO", alias="FINSENSE_LOG_LEVEL")
    seed: int | None = Field(
        None,
        alias="FINSENSE_SEED",
        description="Seed for the scorer's random draw; unset means non-deterministic scores.",
    )
    max_sessions: int = Field(
        256,
        ge=1,
        alias="FINSENSE_MAX_SESSIONS",
        description="Live per-user sessions the HTTP API keeps before closing the least recently used.",
    )


def get_settings() -> Settings:
    """Return a settings instance reflecting the current environment."""
    return Settings()
