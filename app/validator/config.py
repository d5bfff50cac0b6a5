"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Anthropic
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    max_output_tokens: int = 4096

    # LaunchDarkly (optional - flags default to disabled when unset)
    launchdarkly_sdk_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "launchdarkly_sdk_key",
            "launchdarkly_client_side_id",
        ),
    )

    # Relay used by the upload UI. None means the in-process endpoint.
    relay_url: str | None = None
    relay_timeout_seconds: float = 120.0

    # Debug flags
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the package directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()
