"""
OpenAI-compatible adapters: OpenAI itself and OpenRouter.

Messages go over the wire verbatim, system role inline.  OpenRouter speaks the
same protocol but requires two extra headers identifying the calling app.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from mybest.services.ai_gateway.base import (
    GenerationOptions,
    Message,
    PreparedRequest,
    ProviderAdapter,
    ProviderIdentity,
)
from mybest.services.ai_gateway.payloads import OpenAIChatPayload, parse_payload


class OpenAIAdapter(ProviderAdapter):
    """Adapter for POST /chat/completions."""

    provider = ProviderIdentity.OPENAI
    default_model = 'gpt-4o-mini'
    default_base_url = 'https://api.openai.com/v1'

    def _headers(self, api_key: str) -> Dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {api_key}',
        }

    def build_request(
        self,
        messages: List[Message],
        options: GenerationOptions,
        api_key: str,
        model: str,
    ) -> PreparedRequest:
        return PreparedRequest(
            url=f'{self.base_url}/chat/completions',
            headers=self._headers(api_key),
            json={
                'model': model,
                'messages': [m.as_dict() for m in messages],
                'temperature': options.temperature,
                'max_tokens': options.max_output_tokens,
            },
        )

    def extract_text(self, data: Any) -> Optional[str]:
        payload = parse_payload(OpenAIChatPayload, data)
        return payload.text() if payload is not None else None


class OpenRouterAdapter(OpenAIAdapter):
    """OpenAI protocol plus the OpenRouter app-identification headers."""

    provider = ProviderIdentity.OPENROUTER
    default_model = 'google/gemini-2.0-flash-exp:free'
    default_base_url = 'https://openrouter.ai/api/v1'

    def __init__(self, *args: Any, app_url: str = '', app_name: str = '', **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.app_url = app_url
        self.app_name = app_name

    def _headers(self, api_key: str) -> Dict[str, str]:
        headers = super()._headers(api_key)
        headers['HTTP-Referer'] = self.app_url
        headers['X-Title'] = self.app_name
        return headers
