"""
FallbackChain — turns one logical "ask the model" call into a sequence of
provider/model attempts.

Two dimensions:

- intra-provider: the caller pinned a provider; try the selected model, then
  that provider's fixed alternatives.  A fatal error stops the loop at once.
- inter-provider: no provider pinned; walk the configured credentials in
  preference order.  A fatal error only rules out that provider.

Nothing is kept between calls.  Attempts run strictly one after another.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import (
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from mybest.services.ai_gateway.base import (
    DEFAULT_PROVIDER_ORDER,
    AllProvidersFailed,
    Attempt,
    ChatResult,
    DeadlineExceeded,
    GenerationOptions,
    MessageLike,
    ProviderAdapter,
    ProviderError,
    ProviderIdentity,
    coerce_messages,
)

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF_SECONDS = 1.0

# Alternatives tried after the selected model, per provider.
DEFAULT_MODEL_FALLBACKS: Dict[ProviderIdentity, List[str]] = {
    ProviderIdentity.GEMINI: ['gemini-2.0-flash', 'gemini-1.5-flash', 'gemini-1.5-pro'],
    ProviderIdentity.OPENAI: ['gpt-4o-mini', 'gpt-4o', 'gpt-3.5-turbo'],
    ProviderIdentity.ANTHROPIC: ['claude-3-5-haiku-latest', 'claude-3-5-sonnet-latest', 'claude-3-haiku-20240307'],
    ProviderIdentity.OPENROUTER: [
        'google/gemini-2.0-flash-exp:free',
        'meta-llama/llama-3.3-70b-instruct:free',
        'mistralai/mistral-7b-instruct:free',
    ],
}

_RATE_LIMIT_MARKERS = ('RESOURCE_EXHAUSTED', 'rate_limit_error', 'rate_limit_exceeded')
_NOT_FOUND_MARKERS = ('NOT_FOUND', 'not_found_error', 'model_not_found')

Credentials = Mapping[Union[ProviderIdentity, str], Optional[str]]
Sleep = Callable[[float], Awaitable[None]]


class FailureKind(str, Enum):
    RATE_LIMITED = 'rate_limited'
    NOT_FOUND = 'not_found'
    FATAL = 'fatal'


def classify_failure(error: ProviderError) -> FailureKind:
    """Decide whether a failed attempt should move on to the next candidate."""
    body = error.raw_body or ''
    if error.status == 429 or any(marker in body for marker in _RATE_LIMIT_MARKERS):
        return FailureKind.RATE_LIMITED
    if error.status == 404 or any(marker in body for marker in _NOT_FOUND_MARKERS):
        return FailureKind.NOT_FOUND
    return FailureKind.FATAL


@dataclass(frozen=True)
class ProviderCandidate:
    provider: ProviderIdentity
    api_key: str
    model: Optional[str] = None


def _normalise_credentials(credentials: Optional[Credentials]) -> Dict[ProviderIdentity, str]:
    keys: Dict[ProviderIdentity, str] = {}
    for name, key in (credentials or {}).items():
        try:
            provider = ProviderIdentity(name)
        except ValueError:
            logger.warning('Ignoring credential for unknown provider %r', name)
            continue
        if key and key.strip():
            keys[provider] = key.strip()
    return keys


def build_candidates(
    credentials: Optional[Credentials],
    preference: Sequence[ProviderIdentity] = DEFAULT_PROVIDER_ORDER,
    models: Optional[Mapping[ProviderIdentity, str]] = None,
) -> List[ProviderCandidate]:
    """Configured providers in preference order; unconfigured ones are skipped."""
    keys = _normalise_credentials(credentials)
    models = models or {}
    return [
        ProviderCandidate(provider=p, api_key=keys[p], model=models.get(p))
        for p in preference
        if p in keys
    ]


def model_candidates(
    provider: ProviderIdentity,
    selected: str,
    fallbacks: Mapping[ProviderIdentity, Sequence[str]],
) -> List[str]:
    ordered = [selected, *fallbacks.get(provider, [])]
    return list(dict.fromkeys(m for m in ordered if m))


class FallbackChain:
    """Retry loop over adapters; see module docstring for the policy."""

    def __init__(
        self,
        adapters: Mapping[ProviderIdentity, ProviderAdapter],
        preference: Sequence[ProviderIdentity] = DEFAULT_PROVIDER_ORDER,
        model_fallbacks: Optional[Mapping[ProviderIdentity, Sequence[str]]] = None,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        deadline_seconds: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.adapters = dict(adapters)
        self.preference = [p for p in preference if p in self.adapters]
        self.model_fallbacks = dict(model_fallbacks if model_fallbacks is not None else DEFAULT_MODEL_FALLBACKS)
        self.backoff_seconds = backoff_seconds
        self.deadline_seconds = deadline_seconds
        self._sleep = sleep

    async def chat(
        self,
        messages: Iterable[MessageLike],
        options: Optional[GenerationOptions] = None,
        credentials: Optional[Credentials] = None,
        *,
        provider: Optional[Union[ProviderIdentity, str]] = None,
        model: Optional[str] = None,
        models: Optional[Mapping[ProviderIdentity, str]] = None,
    ) -> ChatResult:
        """
        Send ``messages`` and return the first successful reply.

        ``provider`` pins the call to one provider (model fallback only).
        ``models`` maps providers to model overrides for the inter-provider
        walk.  Raises AllProvidersFailed when every candidate failed, or the
        ProviderError itself for a fatal error in a pinned call.
        """
        canonical = coerce_messages(messages)
        options = options or GenerationOptions()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.deadline_seconds if self.deadline_seconds else None

        if provider is not None:
            pinned = ProviderIdentity(provider)
            return await self._chat_pinned(canonical, options, credentials, pinned, model, deadline)
        return await self._chat_any(canonical, options, credentials, models, deadline)

    # ---- intra-provider ----

    async def _chat_pinned(self, messages, options, credentials, provider, model, deadline) -> ChatResult:
        adapter = self.adapters.get(provider)
        api_key = _normalise_credentials(credentials).get(provider)
        if adapter is None or not api_key:
            raise AllProvidersFailed(f'No credential configured for provider {provider.value}')

        candidates = model_candidates(provider, model or adapter.default_model, self.model_fallbacks)
        attempts: List[Attempt] = []
        last_error: Optional[Exception] = None

        for index, candidate_model in enumerate(candidates):
            has_next = index < len(candidates) - 1
            try:
                text = await self._attempt(adapter, messages, options, api_key, candidate_model, deadline)
            except DeadlineExceeded as exc:
                attempts.append(Attempt(provider, candidate_model, 'deadline'))
                raise AllProvidersFailed('Deadline exceeded during model fallback', exc, attempts) from exc
            except ProviderError as exc:
                last_error = exc
                kind = classify_failure(exc)
                attempts.append(Attempt(provider, candidate_model, kind.value, exc.status))
                if kind is FailureKind.FATAL:
                    logger.error(
                        'Fatal error from %s model=%s status=%s — not trying other models',
                        provider.value, candidate_model, exc.status,
                    )
                    raise
                logger.warning(
                    '%s model=%s %s (status=%s) — trying next model',
                    provider.value, candidate_model, kind.value, exc.status,
                )
                if kind is FailureKind.RATE_LIMITED and has_next:
                    await self._backoff(deadline)
                continue

            logger.info('Chat answered by %s model=%s after %d attempt(s)', provider.value, candidate_model, index + 1)
            return ChatResult(text=text, provider=provider, model=candidate_model)

        raise AllProvidersFailed(f'All {provider.value} models failed', last_error, attempts)

    # ---- inter-provider ----

    async def _chat_any(self, messages, options, credentials, models, deadline) -> ChatResult:
        candidates = build_candidates(credentials, self.preference, models)
        if not candidates:
            raise AllProvidersFailed('No provider credentials configured')

        attempts: List[Attempt] = []
        last_error: Optional[Exception] = None

        for index, candidate in enumerate(candidates):
            has_next = index < len(candidates) - 1
            adapter = self.adapters[candidate.provider]
            candidate_model = candidate.model or adapter.default_model
            try:
                text = await self._attempt(adapter, messages, options, candidate.api_key, candidate_model, deadline)
            except DeadlineExceeded as exc:
                attempts.append(Attempt(candidate.provider, candidate_model, 'deadline'))
                raise AllProvidersFailed('Deadline exceeded during provider fallback', exc, attempts) from exc
            except ProviderError as exc:
                last_error = exc
                kind = classify_failure(exc)
                attempts.append(Attempt(candidate.provider, candidate_model, kind.value, exc.status))
                logger.warning(
                    'Provider %s model=%s failed: %s (status=%s)%s',
                    candidate.provider.value, candidate_model, kind.value, exc.status,
                    ' — trying next provider' if has_next else '',
                )
                if kind is FailureKind.RATE_LIMITED and has_next:
                    await self._backoff(deadline)
                continue

            logger.info(
                'Chat answered by %s model=%s after %d attempt(s)',
                candidate.provider.value, candidate_model, index + 1,
            )
            return ChatResult(text=text, provider=candidate.provider, model=candidate_model)

        raise AllProvidersFailed(f'All {len(candidates)} configured provider(s) failed', last_error, attempts)

    async def _backoff(self, deadline) -> None:
        delay = self.backoff_seconds
        if deadline is not None:
            # never sleep past the deadline; the next attempt then fails fast
            delay = min(delay, max(deadline - asyncio.get_running_loop().time(), 0.0))
        if delay > 0:
            await self._sleep(delay)

    async def _attempt(self, adapter, messages, options, api_key, model, deadline) -> str:
        if deadline is None:
            return await adapter.send(messages, options, api_key, model)

        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise DeadlineExceeded('Deadline reached before the attempt started')
        try:
            return await asyncio.wait_for(adapter.send(messages, options, api_key, model), timeout=remaining)
        except asyncio.TimeoutError as exc:
            raise DeadlineExceeded(
                f'{adapter.provider.value} model={model} did not answer within the deadline'
            ) from exc
