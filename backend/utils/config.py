"""
SyncWatch Configuration Module.

Centralizes all configuration settings using Pydantic Settings.
Requires Python 3.11+.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file into os.environ at module import time
# This ensures nested BaseSettings classes can read the values
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try current working directory
    load_dotenv()


RegistrationPolicy = Literal["strict", "best_effort"]
BridgeBackend = Literal["auto", "inotify", "watchdog"]


class WatcherSettings(BaseSettings):
    """Recursive watcher settings."""

    model_config = SettingsConfigDict(env_prefix="SYNCWATCH_")

    stream_capacity: int = Field(
        default=1,
        ge=1,
        le=10_000,
        description="Slots in each outbound stream before the dispatcher blocks",
    )
    registration_policy: RegistrationPolicy = Field(
        default="strict",
        description="How watch() reacts to a subdirectory that cannot be registered",
    )
    shutdown_timeout: float = Field(
        default=5.0,
        ge=0.1,
        description="Seconds to wait for the bridge's reader thread on close",
    )
    backend: BridgeBackend = Field(
        default="auto",
        description="Primitive engine: inotify on Linux and watchdog elsewhere when auto",
    )
    poll_interval: float = Field(
        default=0.2,
        gt=0,
        le=5.0,
        description="Seconds the inotify reader waits for events before checking for shutdown",
    )
    follow_symlinks: bool = Field(
        default=False,
        description="Descend into symlinked directories when walking a subtree",
    )

    @field_validator("registration_policy", "backend", mode="before")
    @classmethod
    def normalize_choice(cls, v: str) -> str:
        """Accept 'best-effort' and mixed case spellings."""
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="console")  # "json" or "console"
    file_path: Path | None = Field(default=None)


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="SyncWatch")
    app_version: str = Field(default="0.1.0")
    environment: str = Field(default="development")

    # Sub-settings
    watcher: WatcherSettings = Field(default_factory=WatcherSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance of Settings for performance.
    Call get_settings.cache_clear() after changing the environment.
    """
    return Settings()
