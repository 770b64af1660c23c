"""
Application settings and configuration management.

Uses Pydantic Settings for validation and environment variable support.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiscordSettings(BaseSettings):
    """Discord session configuration shared by every connected bot."""

    tokens: dict[str, str] = Field(
        default_factory=dict,
        description="Bot id -> bot token for bots connected before a script runs. "
                    "Set via DISCORD__TOKENS='{\"mybot\": \"<token>\"}'",
    )
    members_intent: bool = Field(
        default=True,
        description="Request the privileged members intent (needed for member lookups by name)",
    )
    presences_intent: bool = Field(
        default=True,
        description="Request the privileged presences intent (needed for user status/activity)",
    )
    message_content_intent: bool = Field(
        default=False,
        description="Request the privileged message content intent",
    )

    model_config = SettingsConfigDict(env_prefix="DISCORD_")

    @field_validator("tokens")
    @classmethod
    def _lowercase_bot_ids(cls, value: dict[str, str]) -> dict[str, str]:
        return {bot_id.lower(): token for bot_id, token in value.items()}


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")

    # Sub-configurations
    discord: DiscordSettings = Field(default_factory=DiscordSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings
