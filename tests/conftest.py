"""Shared fixtures: scripted adapters, a recording sleep and blank settings."""

from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from mybest.core.config import Settings
from mybest.services.ai_gateway.base import (
    ChatResult,
    GatewayError,
    ProviderError,
    ProviderIdentity,
    coerce_messages,
)


class ScriptedAdapter:
    """Stands in for a ProviderAdapter; each call consumes the next scripted outcome.

    An outcome is either reply text, or an exception instance to raise.
    """

    def __init__(self, provider: ProviderIdentity, outcomes: List[Any], default_model: str = "default-model"):
        self.provider = provider
        self.default_model = default_model
        self.outcomes = list(outcomes)
        self.calls: List[Dict[str, Any]] = []

    async def send(self, messages, options, api_key, model=None):
        self.calls.append({"messages": coerce_messages(messages), "options": options, "api_key": api_key, "model": model})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeChain:
    """Minimal FallbackChain double for services and routes."""

    def __init__(self, reply: Optional[str] = None, error: Optional[GatewayError] = None,
                 provider: ProviderIdentity = ProviderIdentity.OPENAI, model: str = "gpt-4o-mini"):
        self.reply = reply
        self.error = error
        self.provider = provider
        self.model = model
        self.calls: List[Dict[str, Any]] = []

    async def chat(self, messages, options=None, credentials=None, *, provider=None, model=None, models=None):
        self.calls.append({
            "messages": coerce_messages(messages),
            "options": options,
            "credentials": dict(credentials or {}),
            "provider": provider,
            "model": model,
        })
        if self.error is not None:
            raise self.error
        return ChatResult(text=self.reply or "", provider=self.provider, model=self.model)


def rate_limited(provider: ProviderIdentity) -> ProviderError:
    return ProviderError(provider, 429, '{"error": {"status": "RESOURCE_EXHAUSTED"}}')


def not_found(provider: ProviderIdentity) -> ProviderError:
    return ProviderError(provider, 404, '{"error": {"status": "NOT_FOUND"}}')


def unauthorized(provider: ProviderIdentity) -> ProviderError:
    return ProviderError(provider, 401, '{"error": "invalid api key"}')


@pytest.fixture
def scripted() -> Callable[..., ScriptedAdapter]:
    return ScriptedAdapter


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def blank_settings() -> Settings:
    """Settings with no provider keys, whatever the host environment holds."""
    return Settings(
        _env_file=None,
        GEMINI_API_KEY="",
        GOOGLE_AI_API_KEY="",
        OPENAI_API_KEY="",
        ANTHROPIC_API_KEY="",
        OPENROUTER_API_KEY="",
        GEMINI_MODEL="",
        OPENAI_MODEL="",
        ANTHROPIC_MODEL="",
        OPENROUTER_MODEL="",
        AI_PROVIDER_ORDER="gemini,openai,anthropic,openrouter",
    )


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
