"""Configuration settings for budaction.

Values are read from the environment (and an optional ``.env`` file) through
pydantic-settings. ``app_settings`` is the process-wide instance; the execution
pipeline never reads it directly but goes through a ``Runtime`` built from it.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from budaction.__about__ import __version__

from .constants import Environment, LogLevel


class AppConfig(BaseSettings):
    """Application configuration for budaction."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # App Info
    name: str = __version__.split("@")[0]
    version: str = __version__.split("@")[-1]

    env: Environment = Field(Environment.DEVELOPMENT, alias="ENV")
    log_level: LogLevel = Field(LogLevel.INFO, alias="LOG_LEVEL")

    # Automatic call logging
    log_calls_level: Optional[LogLevel] = Field(
        LogLevel.INFO,
        alias="ACTION_LOG_CALLS_LEVEL",
        description="Level for the automatic before/after log lines, empty to disable",
    )
    raise_piping_errors_outside_production: bool = Field(
        False,
        alias="RAISE_PIPING_ERRORS_OUTSIDE_PRODUCTION",
        description="Re-raise errors from message, callback and hook callables in development and testing",
    )
    include_retry_command_in_exceptions: bool = Field(False, alias="INCLUDE_RETRY_COMMAND_IN_EXCEPTIONS")

    # Observability
    metrics_enabled: bool = Field(True, alias="ACTION_METRICS_ENABLED")
    tracing_enabled: bool = Field(True, alias="ACTION_TRACING_ENABLED")
    profiling_enabled: bool = Field(False, alias="ACTION_PROFILING_ENABLED")
    profile_output_dir: Path = Field(Path("tmp/profiles"), alias="ACTION_PROFILE_OUTPUT_DIR")

    @field_validator("env", mode="before")
    @classmethod
    def parse_env(cls, value: object) -> Environment:
        return Environment.from_string(value)  # type: ignore[arg-type]

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, value: object) -> LogLevel:
        return LogLevel.from_string(value)  # type: ignore[arg-type]

    @field_validator("log_calls_level", mode="before")
    @classmethod
    def parse_log_calls_level(cls, value: object) -> Optional[LogLevel]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return LogLevel.from_string(value)  # type: ignore[arg-type]

    @property
    def debug(self) -> bool:
        return not self.env.is_production


app_settings = AppConfig()
