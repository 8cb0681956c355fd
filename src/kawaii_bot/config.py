"""
Configuration management for Kawaii Bot.

This module handles all configuration loading from environment variables,
validation, and provides typed configuration objects for use throughout
the application.

The configuration is loaded from environment variables and .env files,
with sensible defaults for development and clear documentation for
production deployment.
"""

from pathlib import Path
from typing import List

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kawaii_bot.utils.exceptions import ConfigurationError


KNOWN_PROVIDERS = {"nekos", "waifu"}


class DiscordConfig(BaseSettings):
    """Discord bot configuration settings."""

    model_config = SettingsConfigDict(env_prefix="DISCORD_")

    bot_token: str = Field(
        ...,
        description="Discord bot token from Developer Portal"
    )
    command_prefix: str = Field(
        default="!",
        description="Command prefix for text commands"
    )
    status_text: str = Field(
        default="Looking at anime girls",
        description="Text shown in the bot's 'listening to' presence"
    )

    @field_validator("bot_token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Validate Discord token format."""
        if not v or not v.strip():
            raise ValueError("Discord bot token must not be empty")
        return v.strip()


class ProviderConfig(BaseSettings):
    """Image provider (nekos.moe, waifu.im) client settings."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    user_agent: str = Field(
        default="KawaiiBot (kawaiibot, v1.0.0)",
        description="User-Agent header sent to the image APIs"
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Request timeout in seconds"
    )
    nekos_base_url: str = Field(
        default="https://nekos.moe/api/v1/",
        description="nekos.moe API base URL"
    )
    nekos_image_url: str = Field(
        default="https://nekos.moe/image/",
        description="nekos.moe image host base URL"
    )
    waifu_base_url: str = Field(
        default="https://api.waifu.im/images",
        description="waifu.im images endpoint"
    )


class DailyConfig(BaseSettings):
    """Daily webhook delivery configuration."""

    model_config = SettingsConfigDict(env_prefix="DAILY_", populate_by_name=True)

    webhook_url: str = Field(
        default="",
        validation_alias=AliasChoices("DAILY_WEBHOOK_URL", "WEBHOOK_URL"),
        description="Discord webhook URL for the daily pictures (empty disables)"
    )
    trigger_hour: int = Field(
        default=5,
        ge=0,
        le=23,
        description="Local hour of day at which the daily pictures are sent"
    )
    max_retries: int = Field(
        default=3,
        gt=0,
        description="Delivery attempts per daily cycle"
    )
    retry_backoff_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Base backoff; attempt N waits N times this after failing"
    )
    providers: List[str] = Field(
        default=["nekos"],
        description="Image providers that contribute to the daily delivery"
    )

    @field_validator("providers")
    @classmethod
    def validate_providers(cls, v: List[str]) -> List[str]:
        """Validate provider names."""
        providers = [p.strip().lower() for p in v if p.strip()]
        unknown = set(providers) - KNOWN_PROVIDERS
        if unknown:
            raise ValueError(f"Unknown providers: {sorted(unknown)}")
        if not providers:
            raise ValueError("At least one provider is required")
        return providers


class StorageConfig(BaseSettings):
    """Local settings persistence configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    settings_path: str = Field(
        default="bot_settings.json",
        description="Path of the JSON file holding persisted bot settings"
    )


class LoggingConfig(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(
        default="INFO",
        description="Logging level"
    )
    format: str = Field(
        default="json",
        description="Log format: 'json' or 'text'"
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in {"json", "text"}:
            raise ValueError("Log format must be 'json' or 'text'")
        return v


class AppConfig(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Sub-configurations
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    providers: ProviderConfig = Field(default_factory=ProviderConfig)
    daily: DailyConfig = Field(default_factory=DailyConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config() -> AppConfig:
    """
    Load and validate application configuration.

    This function loads configuration from environment variables and .env files,
    validates all settings, and returns a fully configured AppConfig instance.

    Returns:
        AppConfig: Validated application configuration

    Raises:
        ConfigurationError: If configuration is invalid or incomplete

    Example:
        ```python
        config = load_config()
        print(f"Daily pictures go out at {config.daily.trigger_hour}:00")
        ```
    """
    # Check for .env file and load it so the sub-configurations see it too
    env_file = Path(".env")
    if env_file.exists():
        from dotenv import load_dotenv
        load_dotenv(env_file)

    try:
        return AppConfig()
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid configuration",
            context={"errors": e.error_count()},
            original_error=e,
        )
