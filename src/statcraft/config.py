"""Configuration management for statcraft using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="STATCRAFT_",
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format (console or json)")

    # Timed modifiers
    interrupt_cancelled_waits: bool = Field(
        default=False,
        description=(
            "Cancelling a timed modifier interrupts its wait and withdraws the contribution. "
            "When false the wait runs to completion and still becomes permanent."
        ),
    )

    # Duplicate handling
    prevent_replaces_tick_loops: bool = Field(
        default=False,
        description=(
            "Prevent-policy periodic effects cancel the running tick loop before starting "
            "a new one. When false every application starts an independent loop."
        ),
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
