"""Response payload shapes, one pydantic model per wire-protocol family.

Only the fields the adapters read are modelled; everything else the vendors
send is ignored.
"""
from __future__ import annotations

from typing import Any, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError


# ---------------------------------------------------------------------------
# OpenAI-compatible (OpenAI, OpenRouter)
# ---------------------------------------------------------------------------

class OpenAIMessage(BaseModel):
    role: Optional[str] = None
    content: Optional[str] = None


class OpenAIChoice(BaseModel):
    message: Optional[OpenAIMessage] = None
    finish_reason: Optional[str] = None


class OpenAIChatPayload(BaseModel):
    choices: List[OpenAIChoice] = []

    def text(self) -> Optional[str]:
        if not self.choices or self.choices[0].message is None:
            return None
        return self.choices[0].message.content


# ---------------------------------------------------------------------------
# Gemini generateContent
# ---------------------------------------------------------------------------

class GeminiPart(BaseModel):
    text: Optional[str] = None


class GeminiContent(BaseModel):
    role: Optional[str] = None
    parts: List[GeminiPart] = []


class GeminiCandidate(BaseModel):
    content: Optional[GeminiContent] = None
    finishReason: Optional[str] = None


class GeminiPayload(BaseModel):
    candidates: List[GeminiCandidate] = []

    def text(self) -> Optional[str]:
        if not self.candidates:
            return None
        content = self.candidates[0].content
        if content is None or not content.parts:
            return None
        return content.parts[0].text


# ---------------------------------------------------------------------------
# Anthropic messages
# ---------------------------------------------------------------------------

class AnthropicBlock(BaseModel):
    type: Optional[str] = None
    text: Optional[str] = None


class AnthropicPayload(BaseModel):
    content: List[AnthropicBlock] = []
    stop_reason: Optional[str] = None

    def text(self) -> Optional[str]:
        if not self.content:
            return None
        return self.content[0].text


ProviderPayload = Union[OpenAIChatPayload, GeminiPayload, AnthropicPayload]

P = TypeVar('P', OpenAIChatPayload, GeminiPayload, AnthropicPayload)


def parse_payload(model: Type[P], data: Any) -> Optional[P]:
    """Validate ``data`` against one payload variant; None if it does not fit."""
    try:
        return model.model_validate(data)
    except ValidationError:
        return None
