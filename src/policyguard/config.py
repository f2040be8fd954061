"""
Configuration for policyguard.

Uses Pydantic Settings to load environment variables.
All settings prefixed with POLICYGUARD_ for namespace isolation.
"""

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PolicyGuardSettings(BaseSettings):
    """
    Settings for the enforcement runtime.

    All environment variables are prefixed with POLICYGUARD_.
    Example: POLICYGUARD_AUDIT_DATABASE_URL, POLICYGUARD_AUDIT_STRICT
    """

    # Audit
    audit_database_url: str = Field(
        "sqlite:///./data/audit/audit.db",
        description="SQLAlchemy URL of the audit database",
    )
    audit_strict: bool = Field(
        False,
        description="Raise on audit write failures instead of logging them",
    )

    # Policy loading
    expand_env_vars: bool = Field(
        True,
        description="Expand ${VAR} and ${VAR:-default} placeholders in policy files",
    )

    # Logging
    log_level: str = Field(
        "INFO",
        description="Logging level",
    )

    model_config = SettingsConfigDict(
        env_prefix="POLICYGUARD_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate log level is valid.

        Args:
            v: Log level string.

        Returns:
            Uppercase log level.

        Raises:
            ValueError: If log level is invalid.
        """
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


_settings: PolicyGuardSettings | None = None


def get_settings() -> PolicyGuardSettings:
    """
    Get policyguard settings from environment.

    Returns:
        PolicyGuardSettings instance.
    """
    global _settings
    if _settings is None:
        _settings = PolicyGuardSettings()  # type: ignore[call-arg]
    return _settings


def reset_settings() -> None:
    """
    Reset settings for testing.

    Clears the cached settings instance.
    """
    global _settings
    _settings = None


def configure_logging(settings: PolicyGuardSettings | None = None) -> None:
    """
    Configure root logging for a host process.

    Args:
        settings: Settings to read the level from (defaults to get_settings()).
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
