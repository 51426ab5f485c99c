"""
siteflow configuration

Settings are read from environment variables prefixed with ``SITEFLOW_``
and from a ``.env`` file in the working directory.

Key settings:
- SITEFLOW_AI_PROVIDER: openai, groq, together, deepseek or custom (default: groq)
- SITEFLOW_AI_API_KEY: API key; without it generation uses the built-in fallback
- SITEFLOW_AI_MODEL / SITEFLOW_AI_BASE_URL: override the provider defaults
- SITEFLOW_STORE_PATH: JSON file used by the local project store
- SITEFLOW_LOG_LEVEL: level used by ``configure_logging``
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

AIProvider = Literal["openai", "groq", "together", "deepseek", "custom"]


class Settings(BaseSettings):
    """siteflow configuration settings."""

    ai_provider: AIProvider = "groq"
    ai_api_key: str | None = None
    ai_model: str | None = None
    ai_base_url: str | None = None
    ai_temperature: float = 0.7
    ai_max_tokens: int = 2000
    ai_timeout: float = 30.0

    store_path: Path = Path.home() / ".siteflow" / "projects.json"

    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="SITEFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_ai_configured(self) -> bool:
        """Check if a text-generation provider can be called."""
        if not self.ai_api_key:
            return False
        if self.ai_provider == "custom" and not self.ai_base_url:
            logger.warning("SITEFLOW_AI_PROVIDER=custom requires SITEFLOW_AI_BASE_URL")
            return False
        return True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str | int | None = None) -> None:
    """Install a root handler; for the CLI only, library code never calls this."""
    if level is None:
        level = get_settings().log_level
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
