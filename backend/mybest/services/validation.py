"""
Input validation for onboarding and goal-chat answers.

Two stages share one contract (ValidationResult):

1. model-assisted: one chain call with a validation prompt, JSON extracted
   from the reply and normalised;
2. heuristic: offline rules, always available.  Strict for name, days,
   yes/no and number; anything non-empty passes elsewhere.

The model stage returns None when no model is reachable, and the caller
falls through to the heuristics, so a conversation never stalls on a
provider outage.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from mybest.schemas.validation import (
    BatchValidationItem,
    BatchValidationResult,
    HistoryTurn,
    ValidationResult,
)
from mybest.services.ai_gateway.base import GatewayError, GenerationOptions, Message
from mybest.services.ai_gateway.extraction import extract_json
from mybest.services.ai_gateway.fallback import FallbackChain
from mybest.services.ai_gateway.prompts import build_validation_prompt

logger = logging.getLogger(__name__)

VALIDATION_OPTIONS = GenerationOptions(temperature=0.3, max_output_tokens=500)
HISTORY_TURNS = 4
FAST_PATH_CONFIDENCE = 0.95
RETRY_PREFIX = 'Let me try again: '

WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

_DAY_TOKENS: Dict[str, List[str]] = {
    'mon': ['monday'],
    'tue': ['tuesday'],
    'tues': ['tuesday'],
    'wed': ['wednesday'],
    'thu': ['thursday'],
    'thur': ['thursday'],
    'thurs': ['thursday'],
    'fri': ['friday'],
    'sat': ['saturday'],
    'sun': ['sunday'],
    'weekday': WEEKDAYS[:5],
    'weekend': WEEKDAYS[5:],
    'everyday': WEEKDAYS,
    'daily': WEEKDAYS,
}
_DAY_TOKENS.update({day: [day] for day in WEEKDAYS})

_ANY_DAY_RE = re.compile(r'\b(?:any|every)\s+day\b')
_WORD_RE = re.compile(r'[a-z]+')
_NAME_RE = re.compile(r"^(?:[^\W\d_]|[\s'-])+$")
_INT_RE = re.compile(r'[+-]?\d+')
_NO_LIMITATIONS_RE = re.compile(r'(?:none|no|nope|nothing|n/?a)[.!]*')
_LIST_SPLIT_RE = re.compile(r'[,;]')

YES_WORDS = frozenset({
    'yes', 'yeah', 'yep', 'yup', 'sure', 'ok', 'okay',
    'definitely', 'absolutely', 'of course', 'y',
})
NO_WORDS = frozenset({'no', 'nope', 'nah', 'not really', 'never', 'n'})

EMPTY_REPROMPT = "I didn't catch that. Could you please type your response?"
GENERIC_REPROMPT = 'Could you tell me a bit more?'
REPROMPTS: Dict[str, str] = {
    'name': 'Could you please tell me your name?',
    'days_available': (
        "Which days work for you? For example: Monday, Wednesday, Friday, or just 'weekends'?"
    ),
    'yes_no': 'Is that a yes or no?',
    'number': 'Could you give me a number?',
}

# (parsed key, confidence) for the permissive contexts.
_PERMISSIVE: Dict[str, tuple] = {
    'personality': ('personality', 0.9),
    'goal_description': ('goal', 0.9),
    'experience_level': ('level', 0.8),
    'duration': ('duration', 0.8),
    'time_available': ('timePreference', 0.8),
}


# ───────────────────────────────────────────────────────────────────
# Heuristics
# ───────────────────────────────────────────────────────────────────

def _retry(question: str, previous_attempts: int) -> str:
    return RETRY_PREFIX + question if previous_attempts > 1 else question


def _invalid(question: str, confidence: float, reasoning: str, previous_attempts: int) -> ValidationResult:
    return ValidationResult(
        is_valid=False,
        follow_up_question=_retry(question, previous_attempts),
        confidence=confidence,
        reasoning=reasoning,
    )


def _valid(parsed: Dict[str, Any], confidence: float, reasoning: str) -> ValidationResult:
    return ValidationResult(is_valid=True, parsed_value=parsed, confidence=confidence, reasoning=reasoning)


def parse_days(text: str) -> List[str]:
    """Weekday names mentioned in ``text``, expanded and in calendar order."""
    lower = text.lower()
    found = set()
    if _ANY_DAY_RE.search(lower):
        found.update(WEEKDAYS)
    for word in _WORD_RE.findall(lower):
        days = _DAY_TOKENS.get(word)
        if days is None and word.endswith('s'):
            days = _DAY_TOKENS.get(word[:-1])
        if days:
            found.update(days)
    return [day for day in WEEKDAYS if day in found]


def heuristic_validation(input_text: str, context: str, previous_attempts: int = 0) -> ValidationResult:
    """Offline verdict for one answer."""
    trimmed = (input_text or '').strip()
    if not trimmed:
        return _invalid(EMPTY_REPROMPT, 1.0, 'Empty input', previous_attempts)

    if context == 'name':
        has_letter = any(ch.isalpha() for ch in trimmed)
        if 2 <= len(trimmed) <= 50 and has_letter and _NAME_RE.match(trimmed):
            return _valid({'name': trimmed}, 0.95, 'Valid name format')
        return _invalid(REPROMPTS['name'], 0.8, 'Not a recognisable name', previous_attempts)

    if context == 'days_available':
        days = parse_days(trimmed)
        if days:
            return _valid({'days': days, 'raw': trimmed}, 0.9, 'Recognised day references')
        return _invalid(REPROMPTS['days_available'], 0.9, 'No valid day references found', previous_attempts)

    if context == 'yes_no':
        lower = trimmed.lower()
        if lower in YES_WORDS:
            return _valid({'value': True}, 1.0, 'Affirmative response')
        if lower in NO_WORDS:
            return _valid({'value': False}, 1.0, 'Negative response')
        return _invalid(REPROMPTS['yes_no'], 0.9, 'Neither yes nor no', previous_attempts)

    if context == 'number':
        if _INT_RE.fullmatch(trimmed):
            return _valid({'value': int(trimmed)}, 1.0, 'Valid number')
        return _invalid(REPROMPTS['number'], 0.9, 'Not an integer', previous_attempts)

    if context == 'free_text':
        return _valid({'text': trimmed}, 0.9, 'Free text accepted')

    if context == 'interests':
        interests = [part.strip() for part in _LIST_SPLIT_RE.split(trimmed) if part.strip()]
        return _valid(
            {'interests': list(dict.fromkeys(interests)), 'raw': trimmed}, 0.9, 'Interests accepted',
        )

    if context == 'physical_info':
        if _NO_LIMITATIONS_RE.fullmatch(trimmed.lower()):
            return _valid({'limitations': []}, 0.9, 'No limitations')
        return _valid({'limitations': [trimmed]}, 0.9, 'Physical info accepted')

    if context in _PERMISSIVE:
        key, confidence = _PERMISSIVE[context]
        return _valid({key: trimmed}, confidence, f'{context} accepted')

    return _valid({'raw': trimmed}, 0.7, 'Accepted without a specific rule')


def reprompt_for(context: str) -> str:
    return REPROMPTS.get(context, GENERIC_REPROMPT)


# ───────────────────────────────────────────────────────────────────
# Model-assisted stage
# ───────────────────────────────────────────────────────────────────

def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.5
    return min(max(float(value), 0.0), 1.0)


def normalise_model_verdict(
    data: Mapping[str, Any],
    input_text: str,
    context: str,
    previous_attempts: int = 0,
) -> ValidationResult:
    """Coerce a model's JSON verdict into a ValidationResult."""
    is_valid = bool(data.get('isValid', data.get('is_valid')))
    parsed = data.get('parsedValue', data.get('parsed_value'))
    follow_up = data.get('followUpQuestion', data.get('follow_up_question'))
    reasoning = data.get('reasoning')
    reasoning = str(reasoning) if reasoning else None

    if is_valid:
        if parsed is None:
            parsed = {'raw': input_text.strip()}
        elif not isinstance(parsed, dict):
            parsed = {'value': parsed}
        return ValidationResult(
            is_valid=True,
            parsed_value=parsed,
            confidence=_confidence(data.get('confidence')),
            reasoning=reasoning,
        )

    question = str(follow_up).strip() if follow_up else ''
    return ValidationResult(
        is_valid=False,
        follow_up_question=_retry(question or reprompt_for(context), previous_attempts),
        confidence=_confidence(data.get('confidence')),
        reasoning=reasoning,
    )


class InputValidator:
    """Validates answers, asking a model first and the heuristics second."""

    def __init__(self, chain: Optional[FallbackChain], credentials: Optional[Mapping[str, str]] = None) -> None:
        self.chain = chain
        self.credentials = dict(credentials or {})

    async def attempt_model_validation(
        self,
        input_text: str,
        context: str,
        question: str = '',
        previous_attempts: int = 0,
        history: Optional[Sequence[HistoryTurn]] = None,
    ) -> Optional[ValidationResult]:
        if self.chain is None or not self.credentials:
            return None

        messages = [Message('system', build_validation_prompt(context, question, previous_attempts))]
        for turn in (history or [])[-HISTORY_TURNS:]:
            messages.append(Message(turn.role, turn.content))
        messages.append(Message('user', input_text))

        try:
            result = await self.chain.chat(messages, VALIDATION_OPTIONS, self.credentials)
        except GatewayError as exc:
            logger.warning('Model validation unavailable for context=%s: %s', context, exc)
            return None

        data = extract_json(result.text)
        if data is None:
            logger.warning(
                'No JSON verdict from %s/%s for context=%s', result.provider.value, result.model, context,
            )
            return None
        return normalise_model_verdict(data, input_text, context, previous_attempts)

    async def validate(
        self,
        input_text: str,
        context: str,
        question: str = '',
        previous_attempts: int = 0,
        history: Optional[Sequence[HistoryTurn]] = None,
    ) -> ValidationResult:
        heuristic = heuristic_validation(input_text, context, previous_attempts)
        if not input_text.strip():
            return heuristic
        if heuristic.is_valid and heuristic.confidence >= FAST_PATH_CONFIDENCE:
            return heuristic

        verdict = await self.attempt_model_validation(
            input_text, context, question, previous_attempts, history,
        )
        if verdict is None:
            logger.info('Falling back to heuristic validation for context=%s', context)
            return heuristic
        return verdict

    async def validate_batch(self, items: Iterable[BatchValidationItem]) -> BatchValidationResult:
        items = list(items)
        verdicts = await asyncio.gather(
            *(self.validate(item.input, item.context, item.question) for item in items)
        )
        results = {item.field: verdict for item, verdict in zip(items, verdicts)}
        invalid = [name for name, verdict in results.items() if not verdict.is_valid]
        return BatchValidationResult(all_valid=not invalid, results=results, invalid_fields=invalid)
