"""Configuration management for sheetforge using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BUNDLED_RULES_DIR = Path(__file__).parent / "data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="SHEETFORGE_",
        extra="ignore",
    )

    # Rules catalog
    rules_dir: Path = Field(
        default=BUNDLED_RULES_DIR, description="Directory holding the rules YAML files"
    )
    strict_condition_keys: bool = Field(
        default=True,
        description="Reject feat effects whose condition key is not registered",
    )

    # Prerequisites
    unmatched_special_is_met: bool = Field(
        default=True,
        description="Treat unrecognized free-text 'special' prerequisites as met",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format (console or json)")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
