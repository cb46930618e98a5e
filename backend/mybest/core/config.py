"""
Application settings.

Values come from the environment (and ``backend/.env``, which ``main.py``
loads before anything else).  Provider keys configured here are the app-level
credentials; per-user keys arriving with a request are merged on top of them
by :func:`mybest.services.ai_gateway.factory.resolve_credentials`.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Dict, List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    APP_NAME: str = 'My Best AI Gateway'
    # Comma-separated list
    CORS_ORIGINS: str = 'http://localhost:3000'

    # ---- Provider credentials ----
    GEMINI_API_KEY: str = ''
    GOOGLE_AI_API_KEY: str = ''  # legacy name for the Gemini key
    OPENAI_API_KEY: str = ''
    ANTHROPIC_API_KEY: str = ''
    OPENROUTER_API_KEY: str = ''

    # ---- Model overrides (empty → adapter default) ----
    GEMINI_MODEL: str = ''
    OPENAI_MODEL: str = ''
    ANTHROPIC_MODEL: str = ''
    OPENROUTER_MODEL: str = ''

    # ---- Fallback chain ----
    AI_PROVIDER_ORDER: str = 'gemini,openai,anthropic,openrouter'
    AI_RATE_LIMIT_BACKOFF_SECONDS: float = 1.0
    AI_REQUEST_TIMEOUT_SECONDS: float = 30.0
    AI_DEADLINE_SECONDS: float = 60.0

    # ---- Vendor specifics ----
    OPENROUTER_APP_URL: str = 'https://mybest.app'
    OPENROUTER_APP_NAME: str = 'My Best'
    ANTHROPIC_VERSION: str = '2023-06-01'

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(',') if o.strip()]

    @property
    def provider_order(self) -> List[str]:
        return [p.strip().lower() for p in self.AI_PROVIDER_ORDER.split(',') if p.strip()]

    @property
    def gemini_key(self) -> str:
        return self.GEMINI_API_KEY or self.GOOGLE_AI_API_KEY

    def provider_keys(self) -> Dict[str, str]:
        """App-level keys by provider name; blank values are kept as ''."""
        return {
            'gemini': self.gemini_key,
            'openai': self.OPENAI_API_KEY,
            'anthropic': self.ANTHROPIC_API_KEY,
            'openrouter': self.OPENROUTER_API_KEY,
        }

    def model_overrides(self) -> Dict[str, str]:
        overrides = {
            'gemini': self.GEMINI_MODEL,
            'openai': self.OPENAI_MODEL,
            'anthropic': self.ANTHROPIC_MODEL,
            'openrouter': self.OPENROUTER_MODEL,
        }
        return {name: model for name, model in overrides.items() if model}


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
