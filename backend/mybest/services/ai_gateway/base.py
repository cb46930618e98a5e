"""
Core gateway types: messages, generation options, provider identities,
results, errors and the ProviderAdapter abstract base class.

Every wire-protocol family (OpenAI-compatible, Gemini, Anthropic) implements
ProviderAdapter.  The fallback chain only ever talks to this interface.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_OUTPUT_TOKENS = 1024
DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=10.0)

_ROLES = ('system', 'user', 'assistant')


class ProviderIdentity(str, Enum):
    GEMINI = 'gemini'
    OPENAI = 'openai'
    ANTHROPIC = 'anthropic'
    OPENROUTER = 'openrouter'


# Preference order used when the caller does not pin a provider.
DEFAULT_PROVIDER_ORDER: Tuple[ProviderIdentity, ...] = (
    ProviderIdentity.GEMINI,
    ProviderIdentity.OPENAI,
    ProviderIdentity.ANTHROPIC,
    ProviderIdentity.OPENROUTER,
)


@dataclass(frozen=True)
class Message:
    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in _ROLES:
            raise ValueError(f'Unsupported message role: {self.role!r}')
        if not isinstance(self.content, str):
            raise ValueError('Message content must be a string')

    def as_dict(self) -> Dict[str, str]:
        return {'role': self.role, 'content': self.content}


@dataclass(frozen=True)
class GenerationOptions:
    temperature: float = DEFAULT_TEMPERATURE
    max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS

    def __post_init__(self) -> None:
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f'temperature must be within [0, 2], got {self.temperature}')
        if self.max_output_tokens <= 0:
            raise ValueError(f'max_output_tokens must be positive, got {self.max_output_tokens}')


@dataclass
class ChatResult:
    """Value object returned by the fallback chain."""
    text: str
    provider: ProviderIdentity
    model: str


@dataclass
class PreparedRequest:
    url: str
    headers: Dict[str, str]
    json: Dict[str, Any]


MessageLike = Union[Message, Mapping[str, Any]]


def coerce_messages(messages: Iterable[MessageLike]) -> List[Message]:
    """Normalise dicts/Messages into a validated list.

    Raises ValueError for unknown roles or more than one system message.
    """
    result: List[Message] = []
    for msg in messages:
        if isinstance(msg, Message):
            result.append(msg)
        else:
            result.append(Message(role=str(msg.get('role', '')), content=msg.get('content') or ''))
    if sum(1 for m in result if m.role == 'system') > 1:
        raise ValueError('At most one system message is allowed')
    return result


def split_system(messages: List[Message]) -> Tuple[Optional[str], List[Message]]:
    """Separate the system instruction from the turn history."""
    system = None
    turns: List[Message] = []
    for msg in messages:
        if msg.role == 'system':
            system = msg.content
        else:
            turns.append(msg)
    return system, turns


# ───────────────────────────────────────────────────────────────────
# Errors
# ───────────────────────────────────────────────────────────────────

class GatewayError(Exception):
    """Base class for everything the gateway raises at its boundary."""


class ProviderError(GatewayError):
    """A single provider call failed (non-2xx, bad payload or transport)."""

    def __init__(
        self,
        provider: ProviderIdentity,
        status: int,
        raw_body: str,
        message: Optional[str] = None,
    ) -> None:
        self.provider = provider
        self.status = status
        self.raw_body = raw_body
        super().__init__(message or f'{provider.value} returned HTTP {status}')


class DeadlineExceeded(GatewayError):
    """The overall deadline ran out while an attempt was in flight."""


@dataclass
class Attempt:
    provider: ProviderIdentity
    model: str
    outcome: str  # "ok", "rate_limited", "not_found", "fatal", "deadline"
    status: Optional[int] = None


class AllProvidersFailed(GatewayError):
    """Every candidate in the chosen fallback dimension failed."""

    def __init__(
        self,
        message: str,
        last_error: Optional[Exception] = None,
        attempts: Optional[List[Attempt]] = None,
    ) -> None:
        self.last_error = last_error
        self.attempts = attempts or []
        super().__init__(message)


# ───────────────────────────────────────────────────────────────────
# Adapter interface
# ───────────────────────────────────────────────────────────────────

class ProviderAdapter(ABC):
    """
    Translates canonical messages + options into one provider's HTTP request
    and reads that provider's response text back.
    """

    provider: ProviderIdentity
    default_model: str
    default_base_url: str

    def __init__(
        self,
        base_url: Optional[str] = None,
        default_model: Optional[str] = None,
        timeout: Union[httpx.Timeout, float] = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = (base_url or self.default_base_url).rstrip('/')
        if default_model:
            self.default_model = default_model
        self._timeout = timeout
        self._client = client

    @abstractmethod
    def build_request(
        self,
        messages: List[Message],
        options: GenerationOptions,
        api_key: str,
        model: str,
    ) -> PreparedRequest:
        """Return the provider-specific request; must not touch the network."""
        ...

    @abstractmethod
    def extract_text(self, data: Any) -> Optional[str]:
        """Return the reply text from a decoded body, or None when absent."""
        ...

    async def send(
        self,
        messages: Iterable[MessageLike],
        options: Optional[GenerationOptions],
        api_key: str,
        model: Optional[str] = None,
    ) -> str:
        canonical = coerce_messages(messages)
        effective_model = model or self.default_model
        request = self.build_request(canonical, options or GenerationOptions(), api_key, effective_model)

        try:
            response = await self._post(request)
        except httpx.HTTPError as exc:
            raise ProviderError(
                self.provider, 0, str(exc),
                message=f'{self.provider.value} transport error: {exc.__class__.__name__}',
            ) from exc

        if not response.is_success:
            raise ProviderError(self.provider, response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderError(
                self.provider, response.status_code, response.text,
                message=f'{self.provider.value} returned a non-JSON body',
            ) from exc

        text = self.extract_text(data)
        if text is None:
            raise ProviderError(
                self.provider, response.status_code, response.text,
                message=f'{self.provider.value} response is missing the reply text',
            )

        logger.debug(
            '%s reply received — model=%s length=%d',
            self.provider.value, effective_model, len(text),
        )
        return text

    async def _post(self, request: PreparedRequest) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(request.url, headers=request.headers, json=request.json)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(request.url, headers=request.headers, json=request.json)
