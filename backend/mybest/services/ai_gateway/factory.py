"""
Gateway factory: wires adapters and the fallback chain from settings.

- Every provider gets an adapter; which ones are *tried* depends on which
  credentials a call carries.
- App-level keys come from settings; per-user (BYOK) keys override them.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict, List, Mapping, Optional

from mybest.core.config import Settings, get_settings
from mybest.services.ai_gateway.anthropic_provider import AnthropicAdapter
from mybest.services.ai_gateway.base import (
    DEFAULT_PROVIDER_ORDER,
    ProviderAdapter,
    ProviderIdentity,
)
from mybest.services.ai_gateway.fallback import FallbackChain
from mybest.services.ai_gateway.gemini_provider import GeminiAdapter
from mybest.services.ai_gateway.openai_provider import OpenAIAdapter, OpenRouterAdapter

logger = logging.getLogger(__name__)


def build_adapters(config: Settings) -> Dict[ProviderIdentity, ProviderAdapter]:
    timeout = config.AI_REQUEST_TIMEOUT_SECONDS
    overrides = config.model_overrides()
    return {
        ProviderIdentity.GEMINI: GeminiAdapter(
            timeout=timeout, default_model=overrides.get('gemini'),
        ),
        ProviderIdentity.OPENAI: OpenAIAdapter(
            timeout=timeout, default_model=overrides.get('openai'),
        ),
        ProviderIdentity.ANTHROPIC: AnthropicAdapter(
            timeout=timeout, default_model=overrides.get('anthropic'),
            api_version=config.ANTHROPIC_VERSION,
        ),
        ProviderIdentity.OPENROUTER: OpenRouterAdapter(
            timeout=timeout, default_model=overrides.get('openrouter'),
            app_url=config.OPENROUTER_APP_URL, app_name=config.OPENROUTER_APP_NAME,
        ),
    }


def provider_order(config: Settings) -> List[ProviderIdentity]:
    order: List[ProviderIdentity] = []
    for name in config.provider_order:
        try:
            provider = ProviderIdentity(name)
        except ValueError:
            logger.warning('Unknown provider %r in AI_PROVIDER_ORDER — skipped', name)
            continue
        if provider not in order:
            order.append(provider)
    return order or list(DEFAULT_PROVIDER_ORDER)


def build_fallback_chain(config: Settings) -> FallbackChain:
    chain = FallbackChain(
        adapters=build_adapters(config),
        preference=provider_order(config),
        backoff_seconds=config.AI_RATE_LIMIT_BACKOFF_SECONDS,
        deadline_seconds=config.AI_DEADLINE_SECONDS or None,
    )
    logger.info(
        'Fallback chain ready — order=%s backoff=%.1fs deadline=%s',
        ','.join(p.value for p in chain.preference),
        chain.backoff_seconds,
        chain.deadline_seconds,
    )
    return chain


@lru_cache
def get_fallback_chain() -> FallbackChain:
    """Process-wide chain built from the current settings."""
    return build_fallback_chain(get_settings())


def resolve_credentials(
    user_keys: Optional[Mapping[str, str]] = None,
    config: Optional[Settings] = None,
) -> Dict[str, str]:
    """Merge per-user keys over the app keys; blank entries are dropped."""
    config = config or get_settings()
    merged = {name: key for name, key in config.provider_keys().items() if key}
    for name, key in (user_keys or {}).items():
        if key and key.strip():
            merged[name.lower()] = key.strip()
    return merged


def configured_providers(credentials: Mapping[str, str], config: Optional[Settings] = None) -> List[str]:
    """Provider names that would be tried for ``credentials``, in order."""
    config = config or get_settings()
    return [p.value for p in provider_order(config) if credentials.get(p.value)]
