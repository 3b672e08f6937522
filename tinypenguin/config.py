"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TINYLLAMA_URL = "http://localhost:11434/v1"
DEFAULT_MODEL = "qwen2.5-coder:3b"
DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024  # 10MB


class Settings(BaseSettings):
    """Application settings loaded from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    # ----- Inference endpoint -----
    tinyllama_url: str = DEFAULT_TINYLLAMA_URL
    model: str = DEFAULT_MODEL
    request_timeout: float = Field(default=30.0, gt=0)

    # ----- Task flow -----
    tools_enabled: bool = True
    debug: bool = False

    # ----- Tools -----
    command_timeout: int = Field(default=30, gt=0)
    max_output_bytes: int = Field(default=DEFAULT_MAX_OUTPUT_BYTES, gt=0)

    # ----- Interaction log -----
    tool_log_path: Path | None = None
    log_marker_file: str = "README.md"
    max_log_entries: int = Field(default=1000, gt=0)

    # ----- Logging -----
    log_level: str = "INFO"

    @property
    def effective_log_level(self) -> str:
        """Log level after applying the debug switch."""
        return "DEBUG" if self.debug else self.log_level


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
