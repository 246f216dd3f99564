"""
Application Configuration

Pydantic-based settings management using environment variables.
Supports nested configuration, validation, and caching.

Usage:
    from legalchat.config import get_settings

    settings = get_settings()
    print(settings.llm.google_model)
    print(settings.store.backend)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, Field, PostgresDsn, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

AVAILABLE_MODELS = (
    "gemini-2.5-flash",
    "gemini-2.5-pro",
    "gemini-2.5-flash-lite",
    "gemini-2.0-flash",
    "gemini-2.0-flash-lite",
    "gemini-flash-latest",
    "gemini-pro-latest",
)


class LLMSettings(BaseSettings):
    """LLM provider configuration."""

    google_api_key: str | None = Field(None, description="Google AI API key")
    google_model: str = Field(
        default="gemini-2.5-flash", description="Gemini model used for answers"
    )

    temperature: float = Field(
        default=0.09,
        ge=0.0,
        le=2.0,
        description="Temperature for LLM responses",
    )
    top_p: float = Field(default=0.7, gt=0.0, le=1.0, description="Nucleus sampling cutoff")
    top_k: int = Field(default=30, gt=0, description="Top-k sampling cutoff")
    max_tokens: int = Field(
        default=2048,
        gt=0,
        le=16000,
        description="Maximum tokens per LLM response",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("google_api_key", mode="before")
    @classmethod
    def normalize_key(cls, v: str | None) -> str | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v

    @field_validator("google_model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        """Only models the assistant was tuned against are accepted."""
        if v not in AVAILABLE_MODELS:
            raise ValueError(
                f"Unknown Gemini model '{v}'. Available: {', '.join(AVAILABLE_MODELS)}"
            )
        return v


class StoreSettings(BaseSettings):
    """Remote chat store configuration."""

    backend: Literal["supabase", "postgres"] = Field(
        default="supabase",
        description="Which remote store holds chat sessions",
    )
    supabase_url: AnyHttpUrl | None = Field(None, description="Supabase project URL")
    supabase_key: str | None = Field(None, description="Supabase anon or service key")
    access_token: str | None = Field(
        None,
        description="User JWT sent as bearer token (row level security); defaults to the key",
    )
    database_url: PostgresDsn | None = Field(
        None,
        description="Postgres connection URL when backend=postgres",
    )
    timeout: float = Field(default=15.0, gt=0, description="Request timeout in seconds")

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("supabase_url", "database_url", "supabase_key", "access_token", mode="before")
    @classmethod
    def normalize_empty(cls, v):
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v


class HistorySettings(BaseSettings):
    """Chat history synchronization settings."""

    storage_path: Path = Field(
        default=Path.home() / ".legalchat" / "local_storage.json",
        description="File backing the local key/value storage",
    )
    save_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts made to persist a message before it is queued",
    )
    retry_backoff_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Backoff unit; attempt n waits n * this value",
    )
    retry_interval_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="Interval of the background retry loop for failed messages",
    )
    title_max_length: int = Field(
        default=50,
        gt=0,
        description="Characters of the first user message used as session title",
    )

    model_config = SettingsConfigDict(
        env_prefix="HISTORY_",
        env_file=".env",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )
    date_format: str = Field(
        default="%Y-%m-%d %H:%M:%S",
        description="Log timestamp format",
    )
    file: Path | None = Field(
        default=None,
        description="Optional log file path (None = stdout only)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        """Configure Python logging with these settings."""
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=getattr(logging, self.level),
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,  # Override any existing configuration
        )


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    Settings are nested by domain (llm, store, history, logging).

    Environment Variables:
        ENVIRONMENT: Deployment environment (development, staging, production)
        APP_NAME: Application name for logging
        LEGALCHAT_USER_ID: Identity used by the CLI when --user-id is omitted
        LLM_*: LLM provider configuration (see LLMSettings)
        STORE_*: Remote store configuration (see StoreSettings)
        HISTORY_*: History sync configuration (see HistorySettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.llm.google_model
        'gemini-2.5-flash'
        >>> settings.history.save_attempts
        3
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(
        default="LegalChat",
        description="Application name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    user_id: str | None = Field(
        default=None,
        description="Authenticated user id used by the CLI",
        validation_alias="LEGALCHAT_USER_ID",
    )

    # Nested settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @model_validator(mode="after")
    def configure_logging(self) -> "Settings":
        """Configure logging when settings are loaded."""
        self.logging.configure()
        return self

    def model_post_init(self, __context) -> None:
        """Log configuration on initialization."""
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "debug": self.debug,
                "llm_model": self.llm.google_model,
                "store_backend": self.store.backend,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("LEGALCHAT_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses functools.lru_cache to ensure settings are loaded only once.

    Returns:
        Settings: Singleton settings instance
    """
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
