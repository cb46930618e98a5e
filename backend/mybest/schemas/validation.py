"""Pydantic schemas for single-answer validation."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

ValidationContext = Literal[
    'name',
    'days_available',
    'yes_no',
    'number',
    'free_text',
    'interests',
    'personality',
    'physical_info',
    'experience_level',
    'goal_description',
    'duration',
    'time_available',
]

STRICT_CONTEXTS = frozenset({'name', 'days_available', 'yes_no', 'number'})


class ValidationResult(BaseModel):
    """
    Verdict for one answer.

    An invalid verdict always carries a follow-up question and a valid one
    always carries a parsed value, so the caller can keep the conversation
    going either way.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_valid: bool
    parsed_value: Optional[Dict[str, Any]] = None
    follow_up_question: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: Optional[str] = None

    @model_validator(mode='after')
    def _check_contract(self) -> 'ValidationResult':
        if not self.is_valid and not (self.follow_up_question or '').strip():
            raise ValueError('an invalid result needs a follow-up question')
        if self.is_valid and self.parsed_value is None:
            raise ValueError('a valid result needs a parsed value')
        return self


class HistoryTurn(BaseModel):
    role: Literal['user', 'assistant']
    content: str


class ValidateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    input: str
    # Plain str so unknown tags fall through to the permissive policy.
    context: str = Field(..., min_length=1)
    question: str = ''
    previous_attempts: int = Field(default=0, ge=0)
    conversation_history: List[HistoryTurn] = Field(default_factory=list)
    api_keys: Optional[Dict[str, str]] = None


class BatchValidationItem(BaseModel):
    field: str
    input: str
    context: str
    question: str = ''


class BatchValidationResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    all_valid: bool
    results: Dict[str, ValidationResult]
    invalid_fields: List[str]


class BatchValidateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: List[BatchValidationItem] = Field(..., min_length=1)
    api_keys: Optional[Dict[str, str]] = None
