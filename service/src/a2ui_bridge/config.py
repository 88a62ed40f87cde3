"""Application configuration with environment variable support."""

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Priority: ENV > .env.local > .env > defaults
    .env.local is gitignored for local overrides
    """

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Service configuration
    PROJECT_NAME: str = "A2UI Bridge"
    DEBUG: bool = False
    HOST: str = "localhost"
    PORT: int = 10002
    LOG_LEVEL: str = "INFO"
    AGENT_URL: Optional[str] = None  # Public URL advertised in the agent card

    # Generation engine (Anthropic Messages API)
    ANTHROPIC_API_KEY: Optional[str] = None
    MODEL: str = "claude-sonnet-4-20250514"
    MAX_TOKENS: int = 8192
    MAX_TOOL_ROUNDS: int = 5

    # Translation behaviour
    # a2ui: tool calls become surfaceUpdate/beginRendering/deleteSurface
    # passthrough: raw tool requests and text are forwarded as-is
    TRANSLATION_MODE: Literal["a2ui", "passthrough"] = "a2ui"
    FORWARD_FINAL_TEXT: bool = False
    INCLUDE_CATALOG_IN_PROMPT: bool = True

    # Catalog cache
    CATALOG_BACKEND: Literal["memory", "sqlite"] = "memory"
    CATALOG_DB_PATH: str = ".a2ui-bridge/catalogs.db"
    CATALOG_TTL_MINUTES: int = 60
    CATALOG_MAX_SESSIONS: int = 1000
    CATALOG_CLEANUP_INTERVAL_SECONDS: int = 60

    # Schema conversion
    SCHEMA_MAX_DEPTH: int = 32


# Global settings instance
settings = Settings()
