"""Client settings using pydantic-settings.

Loads configuration from environment variables with .env file support.
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,  # Allow both field name and alias
    )

    # Environment
    environment: Literal["development", "staging", "production", "testing"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Chat API
    api_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the chat API",
        validation_alias=AliasChoices("api_url", "chat_api_url"),
    )
    api_token: SecretStr = Field(
        default=SecretStr(""),
        description="Bearer token for the chat API (empty = no Authorization header)",
        validation_alias=AliasChoices("api_token", "chat_api_token"),
    )

    # Timeouts
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for non-streaming requests",
    )
    stream_timeout: float = Field(
        default=300.0,
        gt=0,
        description="Read timeout in seconds while a message stream is open",
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Connect timeout in seconds for all requests",
    )

    # Streaming
    send_failure_message: str = Field(
        default="Failed to send message",
        description="User-visible message shown when the transport fails mid-send",
    )
    title_max_length: int = Field(
        default=20,
        ge=1,
        le=255,
        description="Visible characters kept when deriving a session title",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded once and reused.
    """
    return Settings()
