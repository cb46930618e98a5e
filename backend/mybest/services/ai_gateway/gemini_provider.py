"""
GeminiAdapter — native generateContent protocol.

History becomes ``contents`` with the assistant role renamed to ``model``;
the system message travels separately as ``systemInstruction``.
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
from mybest.services.ai_gateway.payloads import GeminiPayload, parse_payload

_ROLE_MAP = {'user': 'user', 'assistant': 'model'}


class GeminiAdapter(ProviderAdapter):
    """Adapter for POST /models/{model}:generateContent."""

    provider = ProviderIdentity.GEMINI
    default_model = 'gemini-2.0-flash'
    default_base_url = 'https://generativelanguage.googleapis.com/v1beta'

    def build_request(
        self,
        messages: List[Message],
        options: GenerationOptions,
        api_key: str,
        model: str,
    ) -> PreparedRequest:
        system, turns = split_system(messages)

        body: Dict[str, Any] = {
            'contents': [
                {'role': _ROLE_MAP[m.role], 'parts': [{'text': m.content}]}
                for m in turns
            ],
            'generationConfig': {
                'temperature': options.temperature,
                'maxOutputTokens': options.max_output_tokens,
            },
        }
        if system:
            body['systemInstruction'] = {'parts': [{'text': system}]}

        return PreparedRequest(
            url=f'{self.base_url}/models/{model}:generateContent',
            headers={
                'Content-Type': 'application/json',
                'x-goog-api-key': api_key,
            },
            json=body,
        )

    def extract_text(self, data: Any) -> Optional[str]:
        payload = parse_payload(GeminiPayload, data)
        return payload.text() if payload is not None else None
