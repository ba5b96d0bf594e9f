"""Application settings powered by Pydantic BaseSettings."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MODELS_CONFIG = Path("~/.config/thinktank/models.yaml")


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    openrouter_api_key: str | None = Field(
        default=None, validation_alias="OPENROUTER_API_KEY"
    )
    models_config: Path = Field(
        default=DEFAULT_MODELS_CONFIG, validation_alias="THINKTANK_MODELS_CONFIG"
    )

    def api_key_for_provider(self, provider: str) -> str | None:
        """Return the API key configured for a provider identifier."""
        keys = {
            "openai": self.openai_api_key,
            "gemini": self.gemini_api_key,
            "openrouter": self.openrouter_api_key,
        }
        return keys.get(provider)

    def api_key_from_env(self, env_var: str) -> str | None:
        """Return the API key stored under a named environment variable.

        Registry configuration names the variable per provider; the three
        well-known names resolve through the typed fields above so that
        values from ``.env`` are honoured as well.
        """
        known = {
            "OPENAI_API_KEY": self.openai_api_key,
            "GEMINI_API_KEY": self.gemini_api_key,
            "OPENROUTER_API_KEY": self.openrouter_api_key,
        }
        if env_var.upper() in known:
            return known[env_var.upper()]
        return os.environ.get(env_var) or None


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
