"""Configuration management for AWS Network Watch.

This module handles loading and validating configuration from environment
variables with sensible defaults. CLI flags override these values per run.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for local use. They can also be
    set via a .env file in the working directory.
    """

    # AWS Configuration
    aws_region: str = Field(
        default="us-east-1",
        description="Default AWS region to scan",
        validation_alias=AliasChoices("AWS_REGION", "AWS_DEFAULT_REGION")
    )
    aws_profile: Optional[str] = Field(
        default=None,
        description="Shared-config profile name (default credential chain if unset)",
        validation_alias="AWS_PROFILE"
    )
    aws_max_retries: int = Field(
        default=5,
        ge=1,
        description="Attempts per AWS call when throttled",
        validation_alias="AWS_MAX_RETRIES"
    )

    # Watch Configuration
    baseline_path: str = Field(
        default="working_state.json",
        description="Path to the baseline snapshot file",
        validation_alias=AliasChoices("NETWORK_WATCH_BASELINE", "BASELINE_PATH")
    )
    watch_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between watch scans",
        validation_alias="NETWORK_WATCH_INTERVAL"
    )
    max_concurrent_fetches: int = Field(
        default=4,
        ge=1,
        description="Maximum resource collections fetched concurrently",
        validation_alias="NETWORK_WATCH_MAX_CONCURRENCY"
    )

    # Output Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="LOG_LEVEL"
    )
    verbose: bool = Field(
        default=False,
        description="Print timings, counts and difference details",
        validation_alias="NETWORK_WATCH_VERBOSE"
    )

    model_config = SettingsConfigDict(
        env_prefix="",  # No prefix for environment variables
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


def get_settings() -> Settings:
    """
    Get application settings.

    Loads settings from environment variables and .env file.

    Returns:
        Settings instance with all configuration values
    """
    return Settings()


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def settings() -> Settings:
    """
    Get the global settings instance.

    Creates the settings instance on first call and caches it.

    Returns:
        Global Settings instance
    """
    global _settings
    if _settings is None:
        _settings = get_settings()
    return _settings
