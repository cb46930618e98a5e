"""
AnthropicAdapter for the Messages API.

The system message is lifted into the top-level ``system`` field and every
request carries the vendor version header.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from mybest.services.ai_gateway.base import (
    GenerationOptions,
    Message,
    PreparedRequest,
    ProviderAdapter,
    ProviderIdentity,
    split_system,
)
from mybest.services.ai_gateway.payloads import AnthropicPayload, parse_payload

DEFAULT_ANTHROPIC_VERSION = '2023-06-01'


class AnthropicAdapter(ProviderAdapter):
    """Adapter for POST /messages."""

    provider = ProviderIdentity.ANTHROPIC
    default_model = 'claude-3-5-haiku-latest'
    default_base_url = 'https://api.anthropic.com/v1'

    def __init__(self, *args: Any, api_version: str = DEFAULT_ANTHROPIC_VERSION, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.api_version = api_version

    def build_request(
        self,
        messages: List[Message],
        options: GenerationOptions,
        api_key: str,
        model: str,
    ) -> PreparedRequest:
        system, turns = split_system(messages)

        body: Dict[str, Any] = {
            'model': model,
            'max_tokens': options.max_output_tokens,
            'temperature': options.temperature,
            'messages': [m.as_dict() for m in turns],
        }
        if system:
            body['system'] = system

        return PreparedRequest(
            url=f'{self.base_url}/messages',
            headers={
                'Content-Type': 'application/json',
                'x-api-key': api_key,
                'anthropic-version': self.api_version,
            },
            json=body,
        )

    def extract_text(self, data: Any) -> Optional[str]:
        payload = parse_payload(AnthropicPayload, data)
        return payload.text() if payload is not None else None
