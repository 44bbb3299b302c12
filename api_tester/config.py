import logging
import os
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Configuration for the database."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="DATABASE_", extra="ignore"
    )

    path: str = Field("api_tester.db", description="Path to the SQLite database file")
    pool_size: int = Field(5, description="Number of pooled connections")
    pool_timeout: float = Field(30.0, description="Seconds to wait for a pooled connection")


class ServerSettings(BaseSettings):
    """Configuration for the HTTP surface."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="SERVER_", extra="ignore"
    )

    host: str = Field("127.0.0.1", description="Interface to bind")
    port: int = Field(8000, description="Port to bind")
    user_header: str = Field(
        "X-User-Id", description="Header carrying the signed-in user id, set by the session layer"
    )
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:4321", "http://127.0.0.1:4321"],
        description="Origins allowed to call the actions",
    )


class RunSettings(BaseSettings):
    """Configuration for run history logging."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="RUNS_", extra="ignore"
    )

    max_response_body_chars: int = Field(
        100_000, description="Response bodies longer than this are truncated before storage"
    )


class AppSettings(BaseSettings):
    """General application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    debug: bool = Field(False, description="Enable debug mode for development")
    log_level: str = Field("INFO", description="Logging level")

    db: DatabaseSettings = Field(default_factory=DatabaseSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    runs: RunSettings = Field(default_factory=RunSettings)

    @property
    def log_level_value(self) -> int:
        """Return the numeric value of the log level."""
        return logging.getLevelName(self.log_level.upper())


@lru_cache
def get_settings() -> AppSettings:
    """
    Get application settings.
    If the TEST_MODE environment variable is set, it returns a configuration
    suitable for testing, otherwise loads the configuration from the .env file.
    """
    if os.getenv("TEST_MODE"):
        return AppSettings(
            debug=True,
            log_level="DEBUG",
            db=DatabaseSettings(path=":memory:"),
            server=ServerSettings(),
            runs=RunSettings(),
        )
    return AppSettings()
