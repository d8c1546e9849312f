"""
Configuration management for toolstream.

This module provides a Settings class that loads configuration from environment
variables, allowing easy configuration without code changes.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Endpoint settings
    base_url: str = "http://localhost:11434/v1"
    api_key: str = "ollama"
    model: str = "llama3.1:8b"

    # Inference settings
    temperature: float = Field(default=0.5, ge=0.0, le=1.0)
    max_tokens: int = Field(default=4096, gt=0)
    system_prompt: str | None = None
    thinking_budget: int | None = None  # None = thinking disabled

    # Tool loop settings
    tool_timeout: float = Field(default=30.0, gt=0)
    max_tool_iterations: int = Field(default=20, gt=0)

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="TOOLSTREAM_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


def get_settings() -> Settings:
    """Get the application settings instance."""
    return Settings()
