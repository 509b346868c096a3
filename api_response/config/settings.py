"""Application configuration powered by ``pydantic-settings``."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExceptionSettings(BaseSettings):
    """Configuration for exception resolution and error responses."""

    rules_file: Optional[str] = Field(
        default=None, description="Path to a JSON file mapping error types to rules"
    )
    strict_rules: bool = Field(
        default=False,
        description="Fail at startup when a rule names an unknown mutator or type",
    )
    debug: bool = Field(
        default=False, description="Include exception class and traceback in responses"
    )

    model_config = SettingsConfigDict(env_prefix="API_RESPONSE_", env_file=".env", extra="ignore")


class LoggingSettings(BaseSettings):
    """Logging level and service name attached to log entries."""

    level: str = Field(default="INFO", description="Minimum log level")
    service_name: Optional[str] = Field(default=None, description="Service name bound to every log entry")

    model_config = SettingsConfigDict(env_prefix="LOG_", env_file=".env", extra="ignore")


class Settings(BaseSettings):
    """Top-level application settings namespace."""

    exceptions: ExceptionSettings = Field(default_factory=ExceptionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(env_file=".env", env_nested_delimiter="__", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance for application use."""

    return Settings()


__all__ = [
    "ExceptionSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
]
